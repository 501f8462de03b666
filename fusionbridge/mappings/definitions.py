from enum import Enum
from typing import Dict, Union


# ----------------------------
# Device classification
# ----------------------------

class DeviceType(str, Enum):
    ALARM = "Alarm"
    CAMERA = "Camera"
    DOOR = "Door"
    GARAGE_DOOR = "Garage Door"
    ENCODER = "Encoder"
    HUB = "Hub"
    IO_MODULE = "I/O Module"
    LOCK = "Lock"
    OUTLET = "Outlet"
    SENSOR = "Sensor"
    SPRINKLER = "Sprinkler"
    SWITCH = "Switch"
    THERMOSTAT = "Thermostat"
    UNMAPPED = "Unmapped"


class DeviceSubtype(str, Enum):
    # Alarm
    SIREN = "Siren"
    # Hub
    CELLULAR = "Cellular"
    GENERIC = "Generic"
    SPEAKER = "Speaker"
    # Outlet
    MULTI = "Multi"
    SINGLE = "Single"
    # Sensor
    CO_SMOKE = "CO & Smoke"
    CONTACT = "Contact"
    LEAK = "Leak"
    MOTION = "Motion"
    POWER_FAILURE = "Power Failure"
    VIBRATION = "Vibration"
    # Switch
    DIMMER = "Dimmer"
    TOGGLE = "Toggle"


# ----------------------------
# Intermediate states
# ----------------------------

class BinaryState(str, Enum):
    ON = "ON"
    OFF = "OFF"


class ContactState(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class SensorAlertState(str, Enum):
    NORMAL = "NORMAL"
    ALERT = "ALERT"


class LockStatus(str, Enum):
    LOCKED = "LOCKED"
    UNLOCKED = "UNLOCKED"


IntermediateState = Union[BinaryState, ContactState, SensorAlertState, LockStatus]


# ----------------------------
# Display strings
# ----------------------------

LOCKED = "Locked"
UNLOCKED = "Unlocked"
ON = "On"
OFF = "Off"
OPEN = "Open"
CLOSED = "Closed"
DRY = "Dry"
LEAK_DETECTED = "Leak Detected"
NO_MOTION = "No Motion"
MOTION_DETECTED = "Motion Detected"
NO_VIBRATION = "No Vibration"
VIBRATION_DETECTED = "Vibration Detected"

DISPLAY_STATES = (
    LOCKED, UNLOCKED, ON, OFF, OPEN, CLOSED, DRY, LEAK_DETECTED,
    NO_MOTION, MOTION_DETECTED, NO_VIBRATION, VIBRATION_DETECTED,
)

# Simple states map one-to-one; sensor alert states depend on the subtype.
CANONICAL_STATE_MAP = {
    "simple": {
        BinaryState.ON: ON,
        BinaryState.OFF: OFF,
        LockStatus.LOCKED: LOCKED,
        LockStatus.UNLOCKED: UNLOCKED,
        ContactState.OPEN: OPEN,
        ContactState.CLOSED: CLOSED,
    },
    "sensor": {
        DeviceSubtype.LEAK: {
            SensorAlertState.NORMAL: DRY,
            SensorAlertState.ALERT: LEAK_DETECTED,
        },
        DeviceSubtype.MOTION: {
            SensorAlertState.NORMAL: NO_MOTION,
            SensorAlertState.ALERT: MOTION_DETECTED,
        },
        DeviceSubtype.VIBRATION: {
            SensorAlertState.NORMAL: NO_VIBRATION,
            SensorAlertState.ALERT: VIBRATION_DETECTED,
        },
    },
}


# ----------------------------
# Event classification
# ----------------------------

class EventCategory(str, Enum):
    DEVICE_STATE = "DEVICE_STATE"
    DEVICE_CONNECTIVITY = "DEVICE_CONNECTIVITY"
    ACCESS_CONTROL = "ACCESS_CONTROL"
    ANALYTICS = "ANALYTICS"
    DIAGNOSTICS = "DIAGNOSTICS"
    UNKNOWN = "UNKNOWN"


class EventType(str, Enum):
    # Device state
    STATE_CHANGED = "STATE_CHANGED"
    BATTERY_LEVEL_CHANGED = "BATTERY_LEVEL_CHANGED"
    BUTTON_PRESSED = "BUTTON_PRESSED"
    BUTTON_LONG_PRESSED = "BUTTON_LONG_PRESSED"

    # Access control
    ACCESS_GRANTED = "ACCESS_GRANTED"
    ACCESS_DENIED = "ACCESS_DENIED"
    DOOR_HELD_OPEN = "DOOR_HELD_OPEN"
    DOOR_FORCED_OPEN = "DOOR_FORCED_OPEN"
    DOOR_SECURED = "DOOR_SECURED"
    EXIT_REQUEST = "EXIT_REQUEST"

    # Connectivity
    DEVICE_ONLINE = "DEVICE_ONLINE"
    DEVICE_OFFLINE = "DEVICE_OFFLINE"

    # Analytics
    ANALYTICS_EVENT = "ANALYTICS_EVENT"
    OBJECT_DETECTED = "OBJECT_DETECTED"
    OBJECT_REMOVED = "OBJECT_REMOVED"
    MOTION_DETECTED = "MOTION_DETECTED"
    SOUND_DETECTED = "SOUND_DETECTED"
    LICENSE_PLATE_DETECTED = "LICENSE_PLATE_DETECTED"
    LOITERING = "LOITERING"
    LINE_CROSSING = "LINE_CROSSING"
    ARMED_PERSON = "ARMED_PERSON"
    TAILGATING = "TAILGATING"
    INTRUSION = "INTRUSION"

    # Diagnostics
    DEVICE_CHECK_IN = "DEVICE_CHECK_IN"
    POWER_CHECK_IN = "POWER_CHECK_IN"

    # Fallback / system
    UNKNOWN_EXTERNAL_EVENT = "UNKNOWN_EXTERNAL_EVENT"
    SYSTEM_NOTIFICATION = "SYSTEM_NOTIFICATION"


class EventSubtype(str, Enum):
    # Access granted
    NORMAL = "NORMAL"
    REMOTE_OVERRIDE = "REMOTE_OVERRIDE"
    PASSBACK_RETURN = "PASSBACK_RETURN"

    # Access denied
    ANTIPASSBACK_VIOLATION = "ANTIPASSBACK_VIOLATION"
    DOOR_LOCKED = "DOOR_LOCKED"
    DURESS_PIN = "DURESS_PIN"
    EXPIRED_CREDENTIAL = "EXPIRED_CREDENTIAL"
    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"
    NOT_IN_SCHEDULE = "NOT_IN_SCHEDULE"
    OCCUPANCY_LIMIT = "OCCUPANCY_LIMIT"
    PIN_REQUIRED = "PIN_REQUIRED"

    # Door secured
    FORCED_OPEN_RESOLVED = "FORCED_OPEN_RESOLVED"
    HELD_OPEN_RESOLVED = "HELD_OPEN_RESOLVED"

    # Exit request
    PRESSED = "PRESSED"
    HELD = "HELD"
    MOTION = "MOTION"

    # Object detection
    PERSON = "PERSON"
    VEHICLE = "VEHICLE"


EVENT_CATEGORY_DISPLAY_MAP: Dict[EventCategory, str] = {
    EventCategory.DEVICE_STATE: "Device State",
    EventCategory.DEVICE_CONNECTIVITY: "Connectivity",
    EventCategory.ACCESS_CONTROL: "Access Control",
    EventCategory.ANALYTICS: "Analytics",
    EventCategory.DIAGNOSTICS: "Diagnostics",
    EventCategory.UNKNOWN: "Unknown",
}

EVENT_TYPE_DISPLAY_MAP: Dict[EventType, str] = {
    EventType.STATE_CHANGED: "State Changed",
    EventType.BATTERY_LEVEL_CHANGED: "Battery Level Changed",
    EventType.BUTTON_PRESSED: "Button Pressed",
    EventType.BUTTON_LONG_PRESSED: "Button Long Pressed",
    EventType.ACCESS_GRANTED: "Access Granted",
    EventType.ACCESS_DENIED: "Access Denied",
    EventType.DOOR_HELD_OPEN: "Door Held Open",
    EventType.DOOR_FORCED_OPEN: "Door Forced Open",
    EventType.DOOR_SECURED: "Door Secured",
    EventType.EXIT_REQUEST: "Exit Request",
    EventType.DEVICE_ONLINE: "Device Online",
    EventType.DEVICE_OFFLINE: "Device Offline",
    EventType.ANALYTICS_EVENT: "Analytics Event",
    EventType.OBJECT_DETECTED: "Object Detected",
    EventType.OBJECT_REMOVED: "Object Removed",
    EventType.MOTION_DETECTED: "Motion Detected",
    EventType.SOUND_DETECTED: "Sound Detected",
    EventType.LICENSE_PLATE_DETECTED: "License Plate Detected",
    EventType.LOITERING: "Loitering",
    EventType.LINE_CROSSING: "Line Crossing",
    EventType.ARMED_PERSON: "Armed Person",
    EventType.TAILGATING: "Tailgating",
    EventType.INTRUSION: "Intrusion",
    EventType.DEVICE_CHECK_IN: "Device Check-In",
    EventType.POWER_CHECK_IN: "Power Check-In",
    EventType.UNKNOWN_EXTERNAL_EVENT: "Unknown Event",
    EventType.SYSTEM_NOTIFICATION: "System Notification",
}

EVENT_SUBTYPE_DISPLAY_MAP: Dict[EventSubtype, str] = {
    EventSubtype.NORMAL: "Normal",
    EventSubtype.REMOTE_OVERRIDE: "Remote Override",
    EventSubtype.PASSBACK_RETURN: "Passback Return",
    EventSubtype.ANTIPASSBACK_VIOLATION: "Anti-Passback Violation",
    EventSubtype.DOOR_LOCKED: "Door Locked",
    EventSubtype.DURESS_PIN: "Duress PIN",
    EventSubtype.EXPIRED_CREDENTIAL: "Expired Credential",
    EventSubtype.INVALID_CREDENTIAL: "Invalid Credential",
    EventSubtype.NOT_IN_SCHEDULE: "Not In Schedule",
    EventSubtype.OCCUPANCY_LIMIT: "Occupancy Limit",
    EventSubtype.PIN_REQUIRED: "PIN Required",
    EventSubtype.FORCED_OPEN_RESOLVED: "Forced Open Resolved",
    EventSubtype.HELD_OPEN_RESOLVED: "Held Open Resolved",
    EventSubtype.PRESSED: "Pressed",
    EventSubtype.HELD: "Held",
    EventSubtype.MOTION: "Motion",
    EventSubtype.PERSON: "Person",
    EventSubtype.VEHICLE: "Vehicle",
}


# ----------------------------
# Areas and device commands
# ----------------------------

class ArmedState(str, Enum):
    DISARMED = "DISARMED"
    ARMED_AWAY = "ARMED_AWAY"
    ARMED_STAY = "ARMED_STAY"
    TRIGGERED = "TRIGGERED"


class ActionableState(str, Enum):
    SET_ON = "SET_ON"
    SET_OFF = "SET_OFF"
    SET_LOCKED = "SET_LOCKED"
    SET_UNLOCKED = "SET_UNLOCKED"
    QUICK_GRANT = "QUICK_GRANT"
