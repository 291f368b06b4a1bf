"""
Sample handlers wired up in config/functions.yml.
"""

import json


def get_user(event, context):
    user_id = event["path"].rstrip("/").rsplit("/", 1)[-1]
    if not user_id.isdigit():
        raise ValueError(f"user {user_id} not found [404]")

    return {
        "statusCode": 200,
        "statusDescription": "200 OK",
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps({"id": int(user_id)}),
        "isBase64Encoded": False,
    }


def echo(event, context):
    return {
        "statusCode": 200,
        "body": event.get("body") or "",
        "isBase64Encoded": event.get("isBase64Encoded", False),
    }
