"""Collection translators: pure functions from a RecordSchema to native creation requests."""

from ..exceptions import SchemaError
from ..schema import VectorProperty


def require_dimensions(vector_property: VectorProperty) -> int:
    """Return the vector dimensions, raising SchemaError when unset or not positive."""
    dimensions = vector_property.dimensions
    if dimensions is None or dimensions <= 0:
        raise SchemaError(
            "Vector property needs positive dimensions to create a collection",
            property_name=vector_property.name,
            dimensions=dimensions,
        )
    return dimensions
