"""
gateway/ — Internal HTTP trigger

FastAPI app that runs proactive jobs on demand for loopback callers or
callers holding CRON_SECRET.
"""
