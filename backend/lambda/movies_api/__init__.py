"""movies_api — Serverless write path for the movies catalog.

Provides:
    - Ingress routing for the single ``POST /movies`` route (API Gateway v2 events)
    - Compute contract and the ``put_movie`` handler
    - DynamoDB storage schema keyed by (year, title)
    - Least-privilege security boundary for the handler
    - Access logging pipeline and X-Ray tracing
    - Custom domain / TLS binding and CloudFormation topology rendering
"""

__version__ = "1.0.0"
