DEFAULT_EXECUTION_RETENTION_SECONDS = 60 * 60
DEFAULT_MODEL_NAME = "google-gla:gemini-1.5-flash"

MISSING_OUTPUT_TEMPLATE = "Missing output: {name}"
PARSE_FAILURE_OUTPUT = "Error: Failed to generate output"
NO_REASONING = "No reasoning provided"
SEQUENTIAL_FLOW_DESCRIPTION = "Sequential flow between agents"
