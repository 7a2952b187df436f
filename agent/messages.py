"""
User-facing messages for terminal outcomes of the planner loop.

Raw tool errors are written for the model; ``translate_error`` turns them
into something a non-technical user can act on.
"""

import re

# (pattern, message) pairs, first match wins
_ERROR_PHRASES = [
    (re.compile(r"dataset\b.*\bnot found", re.IGNORECASE),
     "The data needed for the analysis could not be found. "
     "Please check that the datasets were loaded correctly."),
    (re.compile(r"column\b.*\bdoes not exist", re.IGNORECASE),
     "A column referenced by the analysis does not exist in the data. "
     "Try a different column name or check the contents of the data."),
    (re.compile(r"no numerical data", re.IGNORECASE),
     "The column used for the calculation contains no numeric data. "
     "Please review the aggregation method or the target column."),
    (re.compile(r"filter\b.*\bresulted in 0 rows", re.IGNORECASE),
     "No rows matched the filter condition. Please change the condition and try again."),
    (re.compile(r"invalid expression format", re.IGNORECASE),
     "The formula for the new column contained an error."),
    (re.compile(r"unsupported aggregation function", re.IGNORECASE),
     "An unsupported aggregation method was requested (use sum, average, count, max or min)."),
    (re.compile(r"requires at least two data points", re.IGNORECASE),
     "A time-series forecast needs at least two data points."),
]

GENERIC_ERROR = "An unexpected error occurred during the analysis."

REPEATED_ERRORS_SUFFIX = "The analysis was stopped after repeated errors."

NO_RESPONSE = "The AI returned an empty response. The analysis has been stopped."

EMPTY_RESPONSE_RETRY = "The AI response was empty. Asking it to summarize the results."

INCOMPLETE_ANSWER = (
    "The AI did not produce a complete answer. "
    "The analysis has been stopped; please rephrase the request and try again."
)

STEP_LIMIT = "The analysis was stopped because it reached the maximum number of steps."

SERVICE_UNAVAILABLE = (
    "The analysis service is currently unavailable. Please try again in a moment."
)

STRATEGIST_FALLBACK_INSTRUCTION = (
    "The strategist AI could not be reached. Process the user's query directly."
)

REVIEWER_FALLBACK_FEEDBACK = "Reviewer AI failed, approving automatically."


def translate_error(error: str) -> str:
    """Map a raw tool error message to a user-facing explanation."""
    text = str(error or "")
    for pattern, message in _ERROR_PHRASES:
        if pattern.search(text):
            return message
    return GENERIC_ERROR


def repeated_error_message(error: str) -> str:
    return f"{translate_error(error)} {REPEATED_ERRORS_SUFFIX}"
