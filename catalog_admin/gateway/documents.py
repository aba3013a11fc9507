# GraphQL documents used by the catalog backend.

PRODUCT_FIELDS = """
    sku
    category
    imageUrl
    productStatus
    quantityInStock
    localizations {
      lang
      country
      productName
      description
      price
      currency
    }
"""

CATEGORY_FIELDS = """
    category
    translations {
      lang
      text
    }
"""

GET_ALL_PRODUCTS = f"""
query GetAllProducts($limit: Int, $nextToken: String) {{
  getAllProducts(limit: $limit, nextToken: $nextToken) {{
    items {{ {PRODUCT_FIELDS} }}
    nextToken
  }}
}}
"""

GET_ALL_PRODUCTS_BY_LOCALIZATION = f"""
query GetAllProductsByLocalization($lang: String, $country: String, $limit: Int, $nextToken: String) {{
  getAllProductsByLocalization(lang: $lang, country: $country, limit: $limit, nextToken: $nextToken) {{
    items {{ {PRODUCT_FIELDS} }}
    nextToken
  }}
}}
"""

GET_PRODUCTS_BY_SKU = f"""
query GetProductsBySku($skus: [ID!]!) {{
  getProductsBySku(skus: $skus) {{ {PRODUCT_FIELDS} }}
}}
"""

GET_PRODUCTS_BY_CATEGORY = f"""
query GetProductsByCategory($category: String!, $limit: Int, $nextToken: String) {{
  getProductsByCategory(category: $category, limit: $limit, nextToken: $nextToken) {{
    items {{ {PRODUCT_FIELDS} }}
    nextToken
  }}
}}
"""

SEARCH_PRODUCTS = f"""
query SearchProducts($search: String!, $limit: Int, $nextToken: String) {{
  searchProducts(search: $search, limit: $limit, nextToken: $nextToken) {{
    items {{ {PRODUCT_FIELDS} }}
    nextToken
  }}
}}
"""

GET_CATEGORY = f"""
query GetCategory($category: ID!) {{
  getCategory(category: $category) {{ {CATEGORY_FIELDS} }}
}}
"""

GET_ALL_CATEGORIES = f"""
query GetAllCategories($limit: Int, $nextToken: String) {{
  getAllCategories(limit: $limit, nextToken: $nextToken) {{
    items {{ {CATEGORY_FIELDS} }}
    nextToken
  }}
}}
"""

SEARCH_CATEGORIES = f"""
query SearchCategories($search: String!, $limit: Int, $nextToken: String) {{
  searchCategories(search: $search, limit: $limit, nextToken: $nextToken) {{
    items {{ {CATEGORY_FIELDS} }}
    nextToken
  }}
}}
"""

GET_ALL_CATEGORIES_BY_LANGUAGE = """
query GetAllCategoriesByLanguage($lang: String, $limit: Int, $nextToken: String) {
  getAllCategoriesByLanguage(lang: $lang, limit: $limit, nextToken: $nextToken) {
    items { category text }
    nextToken
  }
}
"""

GET_ORDER_EVENTS = """
query GetOrderEvents($limit: Int, $nextToken: String, $orderId: String) {
  getOrderEvents(limit: $limit, nextToken: $nextToken, orderId: $orderId) {
    items {
      eventId
      orderId
      logType
      timestamp
      message
      details
    }
    nextToken
  }
}
"""

GET_ORDER_DETAILS = """
query GetOrderDetails($orderId: String!) {
  getOrderDetails(orderId: $orderId) {
    orderId
    amount
    currency
    products { sku quantity price }
  }
}
"""

CREATE_PRODUCT = f"""
mutation CreateProduct($input: CreateProductInput!) {{
  createProduct(input: $input) {{ {PRODUCT_FIELDS} }}
}}
"""

UPDATE_PRODUCT = f"""
mutation UpdateProduct($input: UpdateProductInput!) {{
  updateProduct(input: $input) {{ {PRODUCT_FIELDS} }}
}}
"""

DELETE_PRODUCT = """
mutation DeleteProduct($sku: ID!) {
  deleteProduct(sku: $sku) { sku }
}
"""

ADD_LOCALIZATION = f"""
mutation AddLocalization($sku: ID!, $localizations: [LocalizationInput!]!) {{
  addLocalization(sku: $sku, localizations: $localizations) {{ {PRODUCT_FIELDS} }}
}}
"""

UPDATE_LOCALIZATION = f"""
mutation UpdateLocalization($sku: ID!, $localizations: [LocalizationInput!]!) {{
  updateLocalization(sku: $sku, localizations: $localizations) {{ {PRODUCT_FIELDS} }}
}}
"""

REMOVE_LOCALIZATION = f"""
mutation RemoveLocalization($sku: ID!, $lang: String!, $country: String!) {{
  removeLocalization(sku: $sku, lang: $lang, country: $country) {{ {PRODUCT_FIELDS} }}
}}
"""

CREATE_CATEGORY = f"""
mutation CreateCategory($input: CreateCategoryInput!) {{
  createCategory(input: $input) {{ {CATEGORY_FIELDS} }}
}}
"""

DELETE_CATEGORY = """
mutation DeleteCategory($category: ID!) {
  deleteCategory(category: $category) { category }
}
"""

UPSERT_CATEGORY_TRANSLATION = f"""
mutation UpsertCategoryTranslation($input: UpsertCategoryTranslationInput!) {{
  upsertCategoryTranslation(input: $input) {{ {CATEGORY_FIELDS} }}
}}
"""

REMOVE_CATEGORY_TRANSLATION = f"""
mutation RemoveCategoryTranslation($category: ID!, $lang: String!) {{
  removeCategoryTranslation(category: $category, lang: $lang) {{ {CATEGORY_FIELDS} }}
}}
"""
