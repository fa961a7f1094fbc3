"""JSON field adapter for pydantic models stored in text columns."""

import logging
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

from sessionkeeper.core.exceptions import SessionSerializationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class JsonFieldAdapter:
    """Turns pydantic models into JSON strings and back.

    Field names are written with their aliases so stored JSON stays stable
    when Python attribute names change.
    """

    def serialize(self, model: BaseModel) -> str:
        """
        Serialize a model to a JSON string.

        Raises:
            SessionSerializationError: If the model cannot be encoded
        """
        try:
            return model.model_dump_json(by_alias=True, exclude_none=True)
        except (TypeError, ValueError) as e:
            raise SessionSerializationError(f"Could not serialize {type(model).__name__}: {e}") from e

    def try_serialize(self, model: BaseModel, default_json: str = "{}") -> str:
        """Serialize a model, returning ``default_json`` on failure"""
        try:
            return self.serialize(model)
        except SessionSerializationError as e:
            logger.warning("Falling back to default JSON: %s", e)
            return default_json

    def deserialize(self, value: str, target: Type[ModelT]) -> ModelT:
        """
        Deserialize a JSON string into ``target``.

        Raises:
            SessionSerializationError: If the JSON is malformed or does not fit the model
        """
        if not value:
            raise SessionSerializationError("Empty JSON value")
        try:
            return target.model_validate_json(value)
        except ValidationError as e:
            raise SessionSerializationError(
                f"Could not deserialize into {target.__name__}: {e.error_count()} error(s)"
            ) from e

    def try_deserialize(self, value: str, target: Type[ModelT], default: ModelT) -> ModelT:
        """Deserialize ``value``, returning ``default`` instead of raising"""
        try:
            return self.deserialize(value, target)
        except SessionSerializationError as e:
            logger.debug("Using default %s: %s", target.__name__, e)
            return default
