"""
LifeGuard — Controller State Table
==================================
Ten application states, their allowed transitions and behavior profiles.
A polling interval of 0 means the state runs no monitoring timer.
"""

STATES = {
    "INITIALIZING": {
        "description": "System starting up and loading configuration",
        "transitions": ["MONITORING", "ERROR"],
        "behavior": {
            "polling_interval_ms": 0,
            "alert_level": "none",
            "ui_mode": "loading",
            "user_actions": [],
            "data_collection": "disabled",
            "notifications": "disabled",
            "auto_actions": [],
        },
    },
    "MONITORING": {
        "description": "Normal monitoring mode with baseline risk assessment",
        "transitions": ["LOW_RISK", "MEDIUM_RISK", "HIGH_RISK", "CRITICAL_RISK", "ERROR", "MAINTENANCE"],
        "behavior": {
            "polling_interval_ms": 30000,
            "alert_level": "info",
            "ui_mode": "normal",
            "user_actions": ["assess_risk", "view_history", "settings"],
            "data_collection": "standard",
            "notifications": "minimal",
            "auto_actions": [],
        },
    },
    "LOW_RISK": {
        "description": "Low risk environment detected",
        "transitions": ["MONITORING", "MEDIUM_RISK", "HIGH_RISK", "CRITICAL_RISK", "ERROR"],
        "behavior": {
            "polling_interval_ms": 60000,
            "alert_level": "success",
            "ui_mode": "relaxed",
            "user_actions": ["assess_risk", "view_tips", "plan_route"],
            "data_collection": "reduced",
            "notifications": "minimal",
            "auto_actions": [],
        },
    },
    "MEDIUM_RISK": {
        "description": "Moderate risk detected - increased vigilance required",
        "transitions": ["LOW_RISK", "MONITORING", "HIGH_RISK", "CRITICAL_RISK", "ERROR"],
        "behavior": {
            "polling_interval_ms": 15000,
            "alert_level": "warning",
            "ui_mode": "alert",
            "user_actions": ["assess_risk", "view_recommendations", "share_location"],
            "data_collection": "enhanced",
            "notifications": "standard",
            "auto_actions": [],
        },
    },
    "HIGH_RISK": {
        "description": "High risk situation - immediate attention required",
        "transitions": ["MEDIUM_RISK", "CRITICAL_RISK", "EMERGENCY_MODE", "ERROR"],
        "behavior": {
            "polling_interval_ms": 5000,
            "alert_level": "danger",
            "ui_mode": "emergency_ready",
            "user_actions": ["emergency_contact", "share_location", "get_directions"],
            "data_collection": "maximum",
            "notifications": "urgent",
            "auto_actions": ["send_location", "log_incident"],
        },
    },
    "CRITICAL_RISK": {
        "description": "Critical risk - emergency protocols activated",
        "transitions": ["EMERGENCY_MODE", "HIGH_RISK", "ERROR"],
        "behavior": {
            "polling_interval_ms": 2000,
            "alert_level": "critical",
            "ui_mode": "emergency",
            "user_actions": ["call_emergency", "send_sos", "share_location"],
            "data_collection": "continuous",
            "notifications": "immediate",
            "auto_actions": ["emergency_contacts", "location_broadcast", "incident_logging"],
        },
    },
    "EMERGENCY_MODE": {
        "description": "Emergency mode - maximum protection protocols",
        "transitions": ["CRITICAL_RISK", "HIGH_RISK", "RECOVERY", "ERROR"],
        "behavior": {
            "polling_interval_ms": 1000,
            "alert_level": "emergency",
            "ui_mode": "emergency_full",
            "user_actions": ["call_911", "panic_button", "medical_info"],
            "data_collection": "emergency",
            "notifications": "broadcast",
            "auto_actions": ["continuous_location", "emergency_services", "family_notification"],
        },
    },
    "RECOVERY": {
        "description": "Post-emergency recovery and assessment",
        "transitions": ["MONITORING", "LOW_RISK", "MEDIUM_RISK", "HIGH_RISK", "ERROR"],
        "behavior": {
            "polling_interval_ms": 10000,
            "alert_level": "info",
            "ui_mode": "recovery",
            "user_actions": ["incident_report", "feedback", "return_normal"],
            "data_collection": "analysis",
            "notifications": "follow_up",
            "auto_actions": [],
        },
    },
    "MAINTENANCE": {
        "description": "System maintenance mode",
        "transitions": ["MONITORING", "ERROR"],
        "behavior": {
            "polling_interval_ms": 0,
            "alert_level": "info",
            "ui_mode": "maintenance",
            "user_actions": ["settings", "diagnostics"],
            "data_collection": "disabled",
            "notifications": "disabled",
            "auto_actions": [],
        },
    },
    "ERROR": {
        "description": "System error state",
        "transitions": ["INITIALIZING", "MONITORING", "MAINTENANCE"],
        "behavior": {
            "polling_interval_ms": 0,
            "alert_level": "error",
            "ui_mode": "error",
            "user_actions": ["retry", "report_bug", "manual_mode"],
            "data_collection": "minimal",
            "notifications": "error",
            "auto_actions": [],
        },
    },
}

LEVEL_TO_STATE = {
    "LOW": "LOW_RISK",
    "MEDIUM": "MEDIUM_RISK",
    "HIGH": "HIGH_RISK",
    "CRITICAL": "CRITICAL_RISK",
}
