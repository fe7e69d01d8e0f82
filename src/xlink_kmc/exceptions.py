class ContractViolationError(Exception):
    """Neighbor-list, geometry or anchor contract was broken."""
    def __init__(self, message="Binding kinetics contract violated."):
        super().__init__(message)

class CheckpointFormatError(ContractViolationError):
    """Spec or checkpoint file does not match the live configuration."""
    def __init__(self, message="Checkpoint record does not match configuration."):
        super().__init__(message)

class TableInversionError(ContractViolationError):
    """Lookup table row or column is not monotonic."""
    def __init__(self, message="Lookup table cannot be inverted along this axis."):
        super().__init__(message)

class InvalidConfigurationError(ValueError):
    """Configuration failed validation."""
    def __init__(self, message="Unable to validate configuration."):
        super().__init__(message)
