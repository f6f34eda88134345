"""Validation of persisted documents.

Every document is checked in full before anything is built from it, so a
bad document is rejected as a whole with a SchemaViolation."""
from typing import Any, Dict, List, Optional, Union

from pydantic import (BaseModel, ConfigDict, Field, RootModel, StrictFloat, StrictInt, StrictStr,
                      ValidationError, field_validator, model_validator)

from pyboss import weight as wt
from pyboss._private.exceptions import SchemaViolation


class TransitionDoc(BaseModel):
    model_config = ConfigDict(extra='forbid', populate_by_name=True)

    to: StrictInt = Field(ge=0)
    input: Optional[StrictStr] = Field(default=None, alias='in')
    out: Optional[StrictStr] = None
    weight: Any = None

    @field_validator('weight')
    @classmethod
    def parse_weight(cls, v):
        # SchemaViolation is a ValueError, so pydantic reports it like any other field error
        return None if v is None else wt.from_json(v)


class StateDoc(BaseModel):
    model_config = ConfigDict(extra='forbid')

    n: Optional[StrictInt] = None
    id: Any = None
    trans: List[TransitionDoc] = Field(default_factory=list)


class MachineDoc(BaseModel):
    model_config = ConfigDict(extra='forbid')

    state: List[StateDoc] = Field(min_length=1)

    @model_validator(mode='after')
    def check_indices(self):
        n_states = len(self.state)
        for s, state in enumerate(self.state):
            if state.n is not None and state.n != s:
                raise ValueError(f"state {s} is numbered {state.n}")
            for t in state.trans:
                if t.to >= n_states:
                    raise ValueError(f"state {s} has a transition to state {t.to}, but there are only {n_states} states")
        return self


class PathDoc(BaseModel):
    model_config = ConfigDict(extra='forbid')

    path: List[TransitionDoc]


class ParamsDoc(RootModel[Dict[str, Union[StrictInt, StrictFloat]]]):
    pass


MODELS = {
    "machine": MachineDoc,
    "params": ParamsDoc,
    "path": PathDoc,
}


def validate(kind: str, doc: Any) -> BaseModel:
    """Check doc against the model for kind and return the parsed model."""
    if kind not in MODELS:
        raise KeyError(f"Unknown document kind: {kind}")
    try:
        return MODELS[kind].model_validate(doc)
    except ValidationError as e:
        raise SchemaViolation(kind, str(e)) from e
