import sqlite3
import sys

DB = sys.argv[1] if len(sys.argv) > 1 else "retailpos.db"
RETURN_ID = sys.argv[2] if len(sys.argv) > 2 else None

conn = sqlite3.connect(DB)
cur = conn.cursor()

print("=== Recent Returns ===")
cur.execute(
    "SELECT id, original_bill_id, customer_name, status, total_return_value, total_exchange_value, balance_amount, return_date "
    "FROM return_transactions ORDER BY return_date DESC LIMIT 20"
)
for r in cur.fetchall():
    print(
        {
            "id": r[0],
            "original_bill_id": r[1],
            "customer": r[2],
            "status": r[3],
            "return": r[4],
            "exchange": r[5],
            "balance": r[6],
            "date": r[7],
        }
    )

print("\n=== Idempotency Records ===")
cur.execute(
    "SELECT key, status, last_error, created_at FROM idempotency_records ORDER BY created_at DESC LIMIT 20"
)
for r in cur.fetchall():
    print(r)

if RETURN_ID:
    for table in ("return_items", "exchange_items"):
        print(f"\n=== {table} for return {RETURN_ID} ===")
        cur.execute(
            f"SELECT product_id, product_name, quantity, unit_price, total_price FROM {table} WHERE return_id=?",
            (RETURN_ID,),
        )
        for r in cur.fetchall():
            print(r)

print("\n=== Low Stock ===")
cur.execute("SELECT id, name, stock_quantity FROM products WHERE stock_quantity <= 2 ORDER BY stock_quantity")
for r in cur.fetchall():
    print(r)

conn.close()
