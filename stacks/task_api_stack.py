import os
from pathlib import Path

from aws_cdk import (
    CfnOutput,
    Duration,
    RemovalPolicy,
    Stack,
    aws_apigateway as apigw,
    aws_cognito as cognito,
    aws_dynamodb as ddb,
    aws_iam as iam,
    aws_lambda as _lambda,
    aws_logs as logs,
)
from constructs import Construct

TASKS_USER_ID_INDEX = "userId-index"
LAMBDA_ASSET_DIR = str(Path(__file__).resolve().parents[1] / "lambda")


class TaskApiStack(Stack):
    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        stage_name = os.getenv("STAGE", "prod")
        data_retention_mode = os.getenv("DATA_RETENTION_MODE", "destroy").strip().lower()
        if data_retention_mode not in {"destroy", "retain"}:
            raise ValueError(
                "DATA_RETENTION_MODE must be 'destroy' or 'retain' (case-insensitive)"
            )
        # Dev-first default: delete stateful resources on teardown.
        # For production deployments, set DATA_RETENTION_MODE=retain.
        stateful_removal_policy = (
            RemovalPolicy.DESTROY
            if data_retention_mode == "destroy"
            else RemovalPolicy.RETAIN
        )
        schema_version = "2026-10-19"
        name_prefix = f"{construct_id}-{stage_name}"

        user_pool = cognito.UserPool(
            self,
            "TaskApiUserPool",
            user_pool_name=f"{name_prefix}-users",
            self_sign_up_enabled=True,
            sign_in_aliases=cognito.SignInAliases(username=True, email=False),
            auto_verify=cognito.AutoVerifiedAttrs(email=False),
            standard_attributes=cognito.StandardAttributes(
                email=cognito.StandardAttribute(required=False, mutable=True),
            ),
            removal_policy=stateful_removal_policy,
        )

        user_pool_client = user_pool.add_client(
            "TaskApiUserPoolClient",
            auth_flows=cognito.AuthFlow(
                admin_user_password=True,
                user_password=True,
                user_srp=True,
            ),
            generate_secret=False,
        )

        tasks_table = ddb.Table(
            self,
            "TasksTable",
            partition_key=ddb.Attribute(name="taskId", type=ddb.AttributeType.STRING),
            sort_key=ddb.Attribute(name="userId", type=ddb.AttributeType.STRING),
            billing_mode=ddb.BillingMode.PAY_PER_REQUEST,
            point_in_time_recovery=True,
            removal_policy=stateful_removal_policy,
        )
        tasks_table.add_global_secondary_index(
            index_name=TASKS_USER_ID_INDEX,
            partition_key=ddb.Attribute(name="userId", type=ddb.AttributeType.STRING),
            projection_type=ddb.ProjectionType.ALL,
        )

        users_table = ddb.Table(
            self,
            "UsersTable",
            partition_key=ddb.Attribute(name="userId", type=ddb.AttributeType.STRING),
            billing_mode=ddb.BillingMode.PAY_PER_REQUEST,
            point_in_time_recovery=True,
            removal_policy=stateful_removal_policy,
        )

        # AWS_REGION is reserved by the Lambda runtime and injected there.
        common_env = {
            "TASKS_TABLE_NAME": tasks_table.table_name,
            "USERS_TABLE_NAME": users_table.table_name,
            "USER_POOL_ID": user_pool.user_pool_id,
            "CLIENT_ID": user_pool_client.user_pool_client_id,
            "TASK_API_SCHEMA_VERSION": schema_version,
        }

        auth_log_group = logs.LogGroup(
            self,
            "AuthHandlerLogGroup",
            retention=logs.RetentionDays.ONE_WEEK,
            removal_policy=stateful_removal_policy,
        )
        tasks_log_group = logs.LogGroup(
            self,
            "TasksHandlerLogGroup",
            retention=logs.RetentionDays.ONE_WEEK,
            removal_policy=stateful_removal_policy,
        )

        auth_fn = _lambda.Function(
            self,
            "AuthHandler",
            runtime=_lambda.Runtime.PYTHON_3_12,
            handler="auth_handler.handler",
            code=_lambda.Code.from_asset(LAMBDA_ASSET_DIR),
            timeout=Duration.seconds(10),
            environment=common_env,
            log_group=auth_log_group,
        )
        users_table.grant_read_write_data(auth_fn)
        auth_fn.add_to_role_policy(
            iam.PolicyStatement(
                actions=[
                    "cognito-idp:AdminConfirmSignUp",
                    "cognito-idp:AdminInitiateAuth",
                ],
                resources=[user_pool.user_pool_arn],
            )
        )

        tasks_fn = _lambda.Function(
            self,
            "TasksHandler",
            runtime=_lambda.Runtime.PYTHON_3_12,
            handler="tasks_handler.handler",
            code=_lambda.Code.from_asset(LAMBDA_ASSET_DIR),
            timeout=Duration.seconds(10),
            environment=common_env,
            log_group=tasks_log_group,
        )
        tasks_table.grant_read_write_data(tasks_fn)

        access_log_group = logs.LogGroup(
            self,
            "ApiAccessLogGroup",
            retention=logs.RetentionDays.ONE_WEEK,
            removal_policy=stateful_removal_policy,
        )

        rest_api = apigw.RestApi(
            self,
            "TaskApi",
            rest_api_name=f"{name_prefix}-api",
            description="Task management service.",
            deploy_options=apigw.StageOptions(
                stage_name=stage_name,
                access_log_destination=apigw.LogGroupLogDestination(access_log_group),
                # Standard fields only; do not log headers (e.g., Authorization).
                access_log_format=apigw.AccessLogFormat.json_with_standard_fields(
                    caller=True,
                    http_method=True,
                    ip=True,
                    protocol=True,
                    request_time=True,
                    resource_path=True,
                    response_length=True,
                    status=True,
                    user=True,
                ),
            ),
            default_cors_preflight_options=apigw.CorsOptions(
                allow_origins=apigw.Cors.ALL_ORIGINS,
                allow_methods=["OPTIONS", "GET", "POST", "PUT", "DELETE"],
                allow_headers=["Content-Type", "Authorization"],
            ),
            cloud_watch_role=True,
        )

        authorizer = apigw.CognitoUserPoolsAuthorizer(
            self,
            "TaskApiCognitoAuthorizer",
            cognito_user_pools=[user_pool],
        )
        auth_integration = apigw.LambdaIntegration(auth_fn)
        tasks_integration = apigw.LambdaIntegration(tasks_fn)

        register = rest_api.root.add_resource("register")
        login = rest_api.root.add_resource("login")
        tasks = rest_api.root.add_resource("tasks")
        task = tasks.add_resource("{taskId}")

        register.add_method(
            "POST",
            auth_integration,
            authorization_type=apigw.AuthorizationType.NONE,
        )
        login.add_method(
            "POST",
            auth_integration,
            authorization_type=apigw.AuthorizationType.NONE,
        )
        for method in ("GET", "POST"):
            tasks.add_method(
                method,
                tasks_integration,
                authorization_type=apigw.AuthorizationType.COGNITO,
                authorizer=authorizer,
            )
        for method in ("PUT", "DELETE"):
            task.add_method(
                method,
                tasks_integration,
                authorization_type=apigw.AuthorizationType.COGNITO,
                authorizer=authorizer,
            )

        CfnOutput(
            self,
            "ApiUrl",
            value=rest_api.url,
        )

        CfnOutput(
            self,
            "UserPoolId",
            value=user_pool.user_pool_id,
        )

        CfnOutput(
            self,
            "UserPoolClientId",
            value=user_pool_client.user_pool_client_id,
        )

        CfnOutput(
            self,
            "TasksTableName",
            value=tasks_table.table_name,
        )

        CfnOutput(
            self,
            "UsersTableName",
            value=users_table.table_name,
        )
