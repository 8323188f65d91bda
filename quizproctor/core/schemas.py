from pydantic import BaseModel


class APIModel(BaseModel):
    """Base for bodies whose JSON keys are camelCase aliases of the fields."""

    class Config:
        populate_by_name = True
