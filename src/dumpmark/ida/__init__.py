"""IDA Pro integration. Importable only inside IDA."""
