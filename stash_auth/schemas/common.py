from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Field names go out as camelCase; input takes either spelling."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    def dump(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class MobileIn(CamelModel):
    phone_number: str
    iso_code: str
