from swstarter.models.domain.swapi_domain import Category, SwapiRecord

__all__ = ["Category", "SwapiRecord"]
