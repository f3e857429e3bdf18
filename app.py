#!/usr/bin/env python3
import os

import aws_cdk as cdk

from stacks.task_api_stack import TaskApiStack

app = cdk.App()

stack_name = os.getenv("CDK_STACK_NAME", "ServerlessTaskApiStack")

TaskApiStack(
    app,
    stack_name,
    env=cdk.Environment(
        account=os.getenv("CDK_DEFAULT_ACCOUNT"),
        region=os.getenv("CDK_DEFAULT_REGION", "us-east-2"),
    ),
)

app.synth()
