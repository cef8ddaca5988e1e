"""Load-Balancer Convergence controller (LBC).

Keeps a running HAProxy in line with a declarative description of backend
services and their endpoints:
 - renders haproxy.cfg from a template and the desired endpoints
 - verifies candidates with `haproxy -c` before anything is committed
 - enables/disables servers over the control socket when that suffices
 - commits (with a timestamped backup) and reloads only when it must
"""
