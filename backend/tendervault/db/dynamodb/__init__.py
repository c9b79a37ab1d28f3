"""Shared DynamoDB utilities.

This package centralizes:
- boto3 client/resource configuration
- retry/backoff policy for throttling and transient service faults
- opaque continuation tokens (base64 of the store's last evaluated key)
- typed errors that the HTTP boundary maps onto stable status codes
- conversion of DynamoDB numbers (Decimal) back to plain JSON numbers

"""
