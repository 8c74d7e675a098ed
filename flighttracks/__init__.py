"""
flighttracks package.

Batch export of historical flight tracks from the Flightradar24 API,
built with requests, python-dotenv and PyYAML.

Modules:
    ingestion/   FR24 API client and the resolve/fetch/filter pipeline
    models.py    In-memory position model
    export.py    CSV writing and result file concatenation
    config.py    Environment and YAML run configuration
    app.py       Command line entry point
"""

__version__ = '1.0.0'
