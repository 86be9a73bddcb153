# GAQL used by the account-hierarchy lookups

CUSTOMER_DESCRIBE = """
SELECT
  customer.id,
  customer.descriptive_name,
  customer.manager,
  customer.currency_code,
  customer.time_zone
FROM customer
LIMIT 1
"""

# Direct, enabled children of a manager (run with login-customer-id = the manager)
SUB_ACCOUNTS = """
SELECT
  customer_client.client_customer,
  customer_client.level,
  customer_client.manager,
  customer_client.descriptive_name,
  customer_client.currency_code,
  customer_client.time_zone,
  customer_client.id,
  customer_client.status
FROM customer_client
WHERE customer_client.status = 'ENABLED'
  AND customer_client.level = 1
"""

# Everything under a manager, the manager itself included (level 0)
ALL_CUSTOMER_CLIENTS = """
SELECT
  customer_client.client_customer,
  customer_client.level,
  customer_client.manager,
  customer_client.descriptive_name,
  customer_client.currency_code,
  customer_client.time_zone,
  customer_client.id,
  customer_client.status
FROM customer_client
"""
