"""GraphQL documents for each report data source.

Every paginated document declares ``$first``, ``$cursor`` and (where the
connection supports search) ``$query``.
"""

from __future__ import annotations

SALES_ORDERS_QUERY = """
query SalesOrders($first: Int!, $query: String, $cursor: String) {
  orders(first: $first, query: $query, after: $cursor) {
    edges {
      node {
        id
        name
        createdAt
        totalPriceSet { shopMoney { amount currencyCode } }
        totalDiscountsSet { shopMoney { amount } }
        totalTaxSet { shopMoney { amount } }
        netPaymentSet { shopMoney { amount } }
      }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

ORDER_DETAILS_QUERY = """
query OrderDetails($first: Int!, $query: String, $cursor: String) {
  orders(first: $first, query: $query, after: $cursor) {
    edges {
      node {
        id
        name
        createdAt
        displayFinancialStatus
        displayFulfillmentStatus
        cancelledAt
        totalPriceSet { shopMoney { amount currencyCode } }
        customer { firstName lastName email }
        lineItems(first: 100) { edges { node { id quantity } } }
      }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

FINANCE_ORDERS_QUERY = """
query FinanceOrders($first: Int!, $query: String, $cursor: String) {
  orders(first: $first, query: $query, after: $cursor) {
    edges {
      node {
        id
        createdAt
        totalPriceSet { shopMoney { amount } }
        currentTotalPriceSet { shopMoney { amount } }
        totalDiscountsSet { shopMoney { amount } }
        totalTaxSet { shopMoney { amount } }
        totalShippingPriceSet { shopMoney { amount } }
        netPaymentSet { shopMoney { amount } }
        totalRefundedSet { shopMoney { amount } }
        totalRefundedShippingSet { shopMoney { amount } }
        lineItems(first: 100) {
          edges {
            node {
              quantity
              discountedUnitPriceSet { shopMoney { amount } }
              variant { inventoryItem { unitCost { amount } } }
            }
          }
        }
        transactions(first: 50) {
          gateway
          status
          kind
          amountSet { shopMoney { amount } }
        }
      }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

PRODUCTS_QUERY = """
query Products($first: Int!, $query: String, $cursor: String) {
  products(first: $first, query: $query, after: $cursor) {
    edges {
      node {
        id
        title
        vendor
        productType
        variants(first: 100) {
          edges { node { id sku price inventoryQuantity } }
        }
      }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

INVENTORY_QUERY = """
query Inventory($first: Int!, $query: String, $cursor: String) {
  products(first: $first, query: $query, after: $cursor) {
    edges {
      node {
        id
        title
        vendor
        productType
        variants(first: 100) {
          edges {
            node {
              id
              sku
              price
              inventoryQuantity
              inventoryItem { id unitCost { amount } }
            }
          }
        }
      }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

CUSTOMERS_QUERY = """
query Customers($first: Int!, $query: String, $cursor: String) {
  customers(first: $first, query: $query, after: $cursor) {
    edges {
      node {
        id
        firstName
        lastName
        email
        createdAt
        numberOfOrders
        amountSpent { amount currencyCode }
        lastOrder { createdAt }
      }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

_DISCOUNT_FIELDS = """
          title
          codes(first: 1) { edges { node { code } } }
          startsAt
          endsAt
          status"""

DISCOUNTS_QUERY = f"""
query Discounts($first: Int!, $query: String, $cursor: String) {{
  codeDiscountNodes(first: $first, query: $query, after: $cursor) {{
    edges {{
      node {{
        id
        codeDiscount {{
          __typename
          ... on DiscountCodeBasic {{{_DISCOUNT_FIELDS}
            usageCount
          }}
          ... on DiscountCodeBxgy {{{_DISCOUNT_FIELDS}
            usageCount
          }}
          ... on DiscountCodeFreeShipping {{{_DISCOUNT_FIELDS}
          }}
        }}
      }}
    }}
    pageInfo {{ hasNextPage endCursor }}
  }}
}}
"""
