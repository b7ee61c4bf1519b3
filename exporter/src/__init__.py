"""
Envoy exporter package.

Acquires and refreshes the cloud-issued token required by the local Enphase
Envoy API, polls the gateway for production telemetry on every scrape, and
exposes it in the Prometheus text format.

CHANGELOG:
- 2026-10-02: Initial creation (STORY-001)

TODO:
- None
"""
