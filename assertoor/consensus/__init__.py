"""Beacon chain spec, block cache, wallclock, REST API client and event stream."""