class GenerationError(Exception):
    retryable = False


class ModelUnavailable(GenerationError):
    """Network failure or timeout talking to the model. Safe to retry."""
    retryable = True


class ModelRefused(GenerationError):
    pass


class MalformedResponse(GenerationError):
    pass


class EmptyGeneration(GenerationError):
    pass


class GenerationCancelled(GenerationError):
    pass
