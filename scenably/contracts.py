"""Versioned runtime contract identifiers for scripts, results and errors."""

ACTION_SCRIPT_SCHEMA_V1 = "action_script.v1"
EXECUTION_RESULT_SCHEMA_V1 = "execution_result.v1"
ERROR_SCHEMA_V1 = "error.v1"
SETTINGS_SCHEMA_V1 = "settings.v1"

SUPPORTED_ACTION_SCRIPT_SCHEMAS = {
    ACTION_SCRIPT_SCHEMA_V1,
}
