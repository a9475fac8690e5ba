class EcographError(Exception):
    """Base class for failures that abort a graph build."""


class NoGraphDataError(EcographError):
    """The first expansion round admitted no entities at all."""


class SeedInferenceError(EcographError):
    """No seed companies were given and none could be inferred from the topic."""


class PipelineInputError(EcographError):
    """Neither seeds nor a topic were supplied."""
