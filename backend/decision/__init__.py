"""Decision service: multi-source signal aggregation and the precision gate.

Uses core/ for indicators and the gate itself; adds the async fan-out to
analyzer sources, configuration and the HTTP API.
"""
