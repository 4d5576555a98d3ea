"""Demonstrates how to enable and configure logging in defectkit.

defectkit logging is disabled by default. Users opt in by calling ``enable_logging()``,
which returns a ``LoggingHandle``. The handle can be used as a context manager
(``with enable_logging(): ...``) or disabled manually via ``handle.disable()``.
When the last active handle is disabled, defectkit logging is automatically turned off.

Key concepts shown here:

- ``level``: controls the minimum log level. The custom ``STAGE`` level
  (numeric value 25, between INFO and WARNING) emits one line per pipeline
  stage and is the default; ``DEBUG`` adds dropped column names and split sizes.
  Structured fields are printed after each message as ``key=value`` pairs.
- ``log_format``: ``"short"`` shows ``timestamp | level | function - message``;
  ``"full"`` adds the module and line number.
- Error logging: ``analyze_dataset`` logs a failed run at WARNING and returns
  a ``PipelineFailure`` instead of raising.
- Automatic cleanup: logging is re-disabled when the context manager exits.
"""

from defectkit import PipelineFailure, PipelineSettings, analyze_dataset, enable_logging

# Twenty wafers: five sensors, a time stamp the pipeline ignores, and a -1/1 pass/fail flag
rows = [
    {
        "Time": f"2024-03-01 08:{i:02d}:00",
        "etch_rate": 100.0 + 3.0 * i,
        "chamber_temp": 60.0 + (i * 7) % 13,
        "rf_power": float((i * 5) % 9),
        "gas_flow": 20.0 + (i % 2) * 4.0 + (i % 5) * 0.3,
        "chuck_id": "7",
        "Pass/Fail": -1 if i % 2 else 1,
    }
    for i in range(20)
]

settings = PipelineSettings(random_seed=0, split_criterion="variance")

with enable_logging(level="DEBUG", log_format="full"):
    result = analyze_dataset(rows, settings=settings)
    if isinstance(result, PipelineFailure):
        raise RuntimeError(result.message)
    print(f"\n{result.to_markdown()}\n")

    # An empty upload is reported, not raised
    failure = analyze_dataset([])
    print(f"\n{failure}\n")

# Logging automatically disabled here
