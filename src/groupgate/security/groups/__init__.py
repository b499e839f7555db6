"""
Group access for owner entities (direct grants plus role-derived access).

Import the service from `groupgate.security.groups.service`; this package
init stays empty so owner models can import the mixin without cycles.
"""
