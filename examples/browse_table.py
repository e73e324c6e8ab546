"""
Example: browsing a DynamoDB Local table page by page.

Start DynamoDB Local (e.g. `docker run -p 8000:8000 amazon/dynamodb-local`),
then run this script. It creates a small Movies table, writes some items and
walks it the way an admin view does: one page at a time, following the
next_token of each page.

Settings come from the environment (DYNAMO_ENDPOINT, DYNADMIN_PAGE_SIZE...).
"""

import logging

from dynadmin import AdminSettings, TableBrowser, TableNotFoundError

logging.basicConfig(level=logging.INFO)

settings = AdminSettings.from_env()
browser = TableBrowser.from_settings(settings)
client = browser.backend.client

try:
    browser.describe("Movies")
except TableNotFoundError:
    print("Creating table Movies...")
    client.create_table(
        TableName="Movies",
        KeySchema=[
            {"AttributeName": "year", "KeyType": "HASH"},
            {"AttributeName": "title", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "year", "AttributeType": "N"},
            {"AttributeName": "title", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName="Movies")

movies = [
    {"year": 2013, "title": "Rush", "rating": 8.1},
    {"year": 2013, "title": "Prisoners", "rating": 8.1},
    {"year": 2013, "title": "Gravity", "rating": 7.7},
    {"year": 2013, "title": "Her", "rating": 8.0},
    {"year": 2014, "title": "Interstellar", "rating": 8.6},
    {"year": 2014, "title": "Whiplash", "rating": 8.5},
    {"year": 2015, "title": "Sicario, Day One", "rating": 7.6},
]
unprocessed = browser.batch_write("Movies", movies)
print(f"Wrote {len(movies) - len(unprocessed)} movies")

# Scan, 3 items per page
print("\n--- All movies ---")
token = None
page_number = 1
while True:
    page = browser.get_page("Movies", page_size=3, start_token=token)
    print(f"Page {page_number}:")
    for item in page.items:
        print(f"  [{browser.encode_item_key('Movies', item)}] {item['title']} ({item['rating']})")
    if not page.has_more:
        break
    token = page.next_token
    page_number += 1

# Filtering on the hash key turns the scan into a query
print("\n--- Movies from 2013 ---")
page = browser.get_page("Movies", filters={"year": "2013"}, page_size=10)
for item in page.items:
    print(f"  {item['title']}")

# Key tokens address single items; commas in values are escaped
token = browser.encode_key(2015, "Sicario, Day One")
print(f"\nToken: {token}")
print(browser.get_item("Movies", token))
