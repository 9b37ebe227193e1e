"""
elasticctl - Elastic Stack Docker deployment manager.

Stands up a master node (Elasticsearch, Kibana, Fleet Server) and additional
Elasticsearch nodes with docker compose, moves the shared certificate bundle
between hosts and reports cluster status.
"""

__version__ = "0.1.0"
