"""Catalog Service Reconciler (CSR).

Keeps a service-discovery catalog in line with an orchestrator's live tasks:
 - registers every running task as a catalog service (once per task id)
 - keeps one load balancer backend record per (service, agent, port) in the KV store
 - deregisters services and drops their backend records once the task is gone

Cache state is in-memory only; a restarted process does one warm-up pass.
"""
