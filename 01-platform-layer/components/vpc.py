import pulumi
import pulumi_awsx as awsx
from typing import Optional

def create_vpc(cluster_name: str, availability_zones: int = 2, tags: Optional[dict] = None):
  if tags is None:
    tags = {}

  # Public subnets carry the load balancers and the NAT gateway, private ones carry the worker nodes
  vpc = awsx.ec2.Vpc("demo-vpc",
          enable_dns_hostnames=True,                   # Required for EKS node registration
          cidr_block="10.0.0.0/16",
          number_of_availability_zones=availability_zones, # EKS wants subnets in at least 2 AZs
          subnet_specs=[
            awsx.ec2.SubnetSpecArgs(
              type=awsx.ec2.SubnetType.PUBLIC,
              cidr_mask=24,
              name="public",
              tags={
                "kubernetes.io/role/elb": "1",         # Internet-facing LBs (Jenkins NLB, app service)
                **tags,
              }
            ),
            awsx.ec2.SubnetSpecArgs(
              type=awsx.ec2.SubnetType.PRIVATE,
              cidr_mask=24,
              name="private",
              tags={
                "kubernetes.io/role/internal-elb": "1",
                **tags,
              }
            )
          ],
          nat_gateways=awsx.ec2.NatGatewayConfigurationArgs(
            strategy=awsx.ec2.NatGatewayStrategy.SINGLE # One per AZ for anything beyond a demo
          ),
          tags={
            "Name": f"{cluster_name}-vpc",
            f"kubernetes.io/cluster/{cluster_name}": "shared", # Cluster discovery
            **tags,
          }
  )

  pulumi.export("vpc_id", vpc.vpc_id)
  pulumi.export("public_subnet_ids", vpc.public_subnet_ids)
  pulumi.export("private_subnet_ids", vpc.private_subnet_ids)

  return vpc
