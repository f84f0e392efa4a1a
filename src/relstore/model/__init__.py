"""Entity models and the model registry."""

from relstore.model.bag import ModelBag
from relstore.model.definitions import Field, Index, Relation, foreign, index, primary, unique
from relstore.model.loader import build_model, load_models, read_specs
from relstore.model.model import Model

__all__ = [
    "Model",
    "ModelBag",
    "Field",
    "Index",
    "Relation",
    "primary",
    "unique",
    "index",
    "foreign",
    "build_model",
    "load_models",
    "read_specs",
]
