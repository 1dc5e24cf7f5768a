"""
Error taxonomy for commands, scenarios and tutorials
"""


class SimulationError(Exception):
    """Base class for rejected operator/instructor requests"""

    code = 'SimulationError'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.code, 'message': self.message}


class InvalidTransition(SimulationError):
    """Command not legal in the current state"""

    code = 'InvalidTransition'


class OutOfRange(SimulationError):
    """Parameter outside configured bounds"""

    code = 'OutOfRange'


class UnknownEntity(SimulationError):
    """Reference to a nonexistent equipment, tag, tutorial or scenario"""

    code = 'UnknownEntity'


class ConflictingActivation(SimulationError):
    """Activation of something that is already active"""

    code = 'ConflictingActivation'
