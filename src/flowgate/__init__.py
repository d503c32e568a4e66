"""flowgate — rate- and concurrency-limited async task executor.

Queues deferred asynchronous operations and starts them no faster than
a configured rate, with a cap on how many run at once and a deadline
per task, to protect downstream services from bursty producers.
"""

__version__ = "1.0.0"
