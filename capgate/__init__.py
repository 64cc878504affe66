"""CapGate.

This package contains a capability invocation gateway: a single-process
service that sits between a request/response transport and a set of named,
pluggable capabilities (tools, resources and prompt templates).

High-level architecture
-----------------------

Every inbound call flows through a fixed pipeline owned by the
``Dispatcher``:

- **Validate**: arguments are checked against the capability's declared input
  schema and against path/command safety rules.
- **Admit**: a sliding-window rate limiter decides whether the caller may
  proceed.
- **Cache check**: read-only capabilities are served from the result cache when
  possible.
- **Execute**: the capability runs under time and output limits, optionally in
  an isolated subprocess. Concurrent identical calls are coalesced into one
  execution.
- **Complete**: successful read-only results are cached, telemetry is recorded
  and the outcome is mapped to a response envelope.

Core subpackages
----------------

- ``capgate.gateway``: registry, validator, rate limiter, cache, sandboxed
  executor, telemetry tracker and dispatcher.
- ``capgate.server``: FastAPI transport adapter exposing the gateway over HTTP.
- ``capgate.core``: logging and monitoring configuration.

Expected failures (validation, permission, rate limit, not found, timeout,
output too large) are modeled as data on ``ExecutionOutcome`` rather than as
exceptions, so a single bad request never interrupts the serving loop.
"""
