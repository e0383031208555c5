from __future__ import annotations
from aws_cdk import (
    Stack, Duration, CfnOutput, RemovalPolicy,
    aws_s3 as s3, aws_dynamodb as ddb,
    aws_iam as iam, aws_cognito as cognito,
    aws_lambda as _lambda,
    aws_apigateway as apigw,
)
from constructs import Construct
from aws_cdk.aws_lambda_python_alpha import PythonFunction


class CoreStack(Stack):
    def __init__(self, scope: Construct, _id: str, *, stage: str = "dev", **kwargs):
        super().__init__(scope, _id, **kwargs)

        # Auth: email sign-in, names required, address optional
        pool = cognito.UserPool(self, "ScentraUsers",
            sign_in_aliases=cognito.SignInAliases(email=True),
            self_sign_up_enabled=True,
            auto_verify=cognito.AutoVerifiedAttrs(email=True),
            standard_attributes=cognito.StandardAttributes(
                given_name=cognito.StandardAttribute(required=True, mutable=True),
                family_name=cognito.StandardAttribute(required=True, mutable=True),
                address=cognito.StandardAttribute(required=False, mutable=True),
            ),
            removal_policy=RemovalPolicy.RETAIN)
        client = pool.add_client("WebClient",
            auth_flows=cognito.AuthFlow(user_srp=True, user_password=True))
        cognito.CfnUserPoolGroup(self, "AdminsGroup",
            user_pool_id=pool.user_pool_id, group_name="ADMINS",
            description="Scentra administrators")

        # Data
        def table(name: str) -> ddb.Table:
            return ddb.Table(self, name,
                partition_key=ddb.Attribute(name="id", type=ddb.AttributeType.STRING),
                billing_mode=ddb.BillingMode.PAY_PER_REQUEST,
                point_in_time_recovery=True)

        listings = table("Listing")
        order_items = table("OrderItem")
        order_items.add_global_secondary_index(
            index_name="byListing",
            partition_key=ddb.Attribute(name="listingId", type=ddb.AttributeType.STRING))
        orders = table("Order")
        todos = table("Todo")

        # Storage: listing images under listings/*
        storage = s3.Bucket(self, "ScentraStorage",
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL, enforce_ssl=True,
            encryption=s3.BucketEncryption.S3_MANAGED, versioned=True)

        env = {
            "STAGE": stage,
            "DDB_TABLE_LISTING": listings.table_name,
            "DDB_TABLE_ORDER_ITEM": order_items.table_name,
            "DDB_TABLE_ORDER": orders.table_name,
            "DDB_TABLE_TODO": todos.table_name,
            "COGNITO_USER_POOL_ID": pool.user_pool_id,
            "COGNITO_CLIENT_ID": client.user_pool_client_id,
            "DEFAULT_AUTH_MODE": "iam",
            "AUTH_BYPASS": "false",
        }

        fn_user_attrs = PythonFunction(self, "GetUserAttributesFn",
            entry=".", index="lambdas/get_user_attributes/index.py", handler="handler",
            runtime=_lambda.Runtime.PYTHON_3_11, memory_size=256, timeout=Duration.seconds(10),
            environment=env)
        # The one permission grant: this function may read user records
        fn_user_attrs.add_to_role_policy(iam.PolicyStatement(
            actions=["cognito-idp:AdminGetUser"], resources=[pool.user_pool_arn]))

        fn_status = PythonFunction(self, "ListingStatusFn",
            entry=".", index="lambdas/listing_status/index.py", handler="handler",
            runtime=_lambda.Runtime.PYTHON_3_11, memory_size=512, timeout=Duration.seconds(30),
            environment=env)
        listings.grant_read_write_data(fn_status)
        order_items.grant_read_write_data(fn_status)

        authorizer = apigw.CognitoUserPoolsAuthorizer(self, "ScentraAuthorizer",
            cognito_user_pools=[pool])
        api = apigw.RestApi(self, "ScentraApi",
            rest_api_name="Scentra Marketplace API",
            deploy_options=apigw.StageOptions(stage_name=stage))

        admin = api.root.add_resource("admin")
        admin.add_resource("listing-status").add_method("POST",
            apigw.LambdaIntegration(fn_status),
            authorizer=authorizer, authorization_type=apigw.AuthorizationType.COGNITO)
        admin.add_resource("user-attributes").add_method("POST",
            apigw.LambdaIntegration(fn_user_attrs),
            authorizer=authorizer, authorization_type=apigw.AuthorizationType.COGNITO)

        CfnOutput(self, "ApiUrl", value=api.url)
        CfnOutput(self, "UserPoolId", value=pool.user_pool_id)
        CfnOutput(self, "UserPoolClientId", value=client.user_pool_client_id)
        CfnOutput(self, "StorageBucket", value=storage.bucket_name)
