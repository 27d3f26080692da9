"""GraphQL documents sent to the monday.com API.

Relation columns are always read through the ``BoardRelationValue`` fragment.
The plain ``text``/``value`` of a relation column is a summary that can come
back empty even when links exist.
"""

from __future__ import annotations

COLUMN_VALUE_FIELDS = """
      id
      type
      text
      value
      ... on StatusValue {
        index
        label
      }
      ... on BoardRelationValue {
        linked_item_ids
        linked_items {
          id
          board {
            id
          }
        }
      }
"""

ITEM_FRAGMENT = (
    """
fragment ItemFields on Item {
  id
  name
  board {
    id
  }
  column_values(ids: $columnIds) {"""
    + COLUMN_VALUE_FIELDS
    + """  }
}
"""
)

BOARD_ITEMS_PAGE = (
    """
query BoardItemsPage($boardIds: [ID!], $limit: Int!, $columnIds: [String!]) {
  boards(ids: $boardIds) {
    id
    items_page(limit: $limit) {
      cursor
      items {
        ...ItemFields
      }
    }
  }
}
"""
    + ITEM_FRAGMENT
)

NEXT_ITEMS_PAGE = (
    """
query NextItemsPage($cursor: String!, $limit: Int!, $columnIds: [String!]) {
  next_items_page(cursor: $cursor, limit: $limit) {
    cursor
    items {
      ...ItemFields
    }
  }
}
"""
    + ITEM_FRAGMENT
)

ITEMS_BY_ID = (
    """
query ItemsById($ids: [ID!], $limit: Int!, $columnIds: [String!]) {
  items(ids: $ids, limit: $limit) {
    ...ItemFields
  }
}
"""
    + ITEM_FRAGMENT
)

ITEM_RELATIONS = (
    """
query ItemRelations($ids: [ID!]) {
  items(ids: $ids) {
    id
    name
    board {
      id
    }
    column_values {"""
    + COLUMN_VALUE_FIELDS
    + """    }
  }
}
"""
)

CHANGE_STATUS = """
mutation ChangeStatus($itemId: ID!, $boardId: ID!, $columnId: String!, $value: JSON!) {
  change_column_value(item_id: $itemId, board_id: $boardId, column_id: $columnId, value: $value) {
    id
  }
}
"""

BOARD_COLUMNS = """
query BoardColumns($boardIds: [ID!], $columnIds: [String!]) {
  boards(ids: $boardIds) {
    id
    name
    columns(ids: $columnIds) {
      id
      title
      type
      settings_str
    }
  }
}
"""

ME = """
query Me {
  me {
    id
    name
    email
  }
}
"""

LIST_WEBHOOKS = """
query Webhooks($boardId: ID!) {
  webhooks(board_id: $boardId) {
    id
    board_id
    event
    config
  }
}
"""

CREATE_WEBHOOK = """
mutation CreateWebhook($boardId: ID!, $url: String!, $event: WebhookEventType!, $config: JSON) {
  create_webhook(board_id: $boardId, url: $url, event: $event, config: $config) {
    id
    board_id
  }
}
"""
