"""Message-to-pod dispatch pipeline.

Each delivery from ``adaptation-request-queue`` is validated, turned into a
dispatch request and submitted to the cluster as a short-lived rebuild pod.
Deliveries are handled one at a time in broker order. Malformed messages are
dropped; cluster failures are returned to the queue so the broker can
redeliver them, optionally up to a redelivery cap.
"""
