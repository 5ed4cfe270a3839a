"""Pure ingestion domain: report fields, layouts, parse results."""
