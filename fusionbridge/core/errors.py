class FusionBridgeError(Exception):
    """Base class for errors raised inside the event core."""


class RuleConfigError(FusionBridgeError):
    """A stored automation rule could not be decoded."""


class ActionExecutionError(FusionBridgeError):
    """An automation action could not be completed."""


class DeviceActionError(ActionExecutionError):
    """A device state change was rejected or is unsupported."""


class ConnectorError(FusionBridgeError):
    """A connector could not be configured or connected."""
