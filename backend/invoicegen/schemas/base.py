from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


class ORMModel(BaseModel):
    """Reads ORM rows; emits camelCase keys and accepts either case on input."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class PatchModel(ORMModel):
    """Partial update: fields may be omitted but never sent as null."""

    @model_validator(mode="after")
    def reject_explicit_nulls(self):
        for field in self.model_fields_set:
            if getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self
