"""
merge_example.py — Worked example shown to the model at the merge stage.

Formatting reference only: the model is told to follow its structure, not its
content.
"""

MERGE_SUMMARIES_EXAMPLE = """# Order Platform — Codebase Overview

## 1. System Overview

The Order Platform accepts customer orders from a web storefront, reserves
inventory, charges payments and notifies customers. It is split into three
deployable services and one shared library:

- **storefront/** — Next.js web application (customer-facing UI)
- **order-service/** — Go HTTP API that owns the order lifecycle
- **inventory-worker/** — Python worker consuming reservation events
- **libs/events/** — shared event schemas (protobuf) used by every service

Services communicate over two channels: synchronous REST calls from the
storefront to `order-service`, and asynchronous events on a Kafka cluster
(`orders.v1`, `inventory.v1`). PostgreSQL stores orders; Redis caches stock
levels.

## 2. Components

### 2.1 storefront/

Renders product pages and the checkout flow. All server-side data fetching
goes through `lib/api.ts`, a thin typed wrapper over `order-service`.

```
storefront/
  pages/
    checkout.tsx        # checkout form; POSTs /orders
    orders/[id].tsx     # polls GET /orders/:id until status is final
  lib/
    api.ts              # typed REST client, retries idempotent GETs
```

### 2.2 order-service/

Owns the `Order` aggregate and its state machine
(`PENDING -> RESERVED -> PAID -> FULFILLED`, or `CANCELLED`).

```
order-service/
  cmd/server/main.go    # wires HTTP router, DB pool, Kafka producer
  internal/orders/
    handler.go          # REST handlers (POST /orders, GET /orders/:id)
    service.go          # state transitions, emits OrderCreated
    repo.go             # PostgreSQL persistence
  internal/consumer/
    inventory.go        # consumes InventoryReserved / InventoryRejected
```

### 2.3 inventory-worker/

Consumes `OrderCreated`, decrements stock atomically in PostgreSQL and
publishes the outcome.

```
inventory-worker/
  worker/main.py        # consumer loop, at-least-once processing
  worker/reserve.py     # SELECT ... FOR UPDATE reservation logic
  worker/cache.py       # Redis stock cache refresh
```

### 2.4 libs/events/

Protobuf definitions and generated code for every event. A schema change
here requires regenerating clients in all services.

## 3. Key Scenarios

**Placing an order.** The storefront POSTs the cart to `order-service`,
which persists a `PENDING` order and publishes `OrderCreated`. The
inventory worker reserves stock and publishes `InventoryReserved`; the
order service moves the order to `RESERVED` and starts payment capture.
The storefront polls `GET /orders/:id` until the order is `PAID` or
`CANCELLED`.

**Out of stock.** The worker publishes `InventoryRejected`; the order
service cancels the order and the storefront shows the failure reason.

## 4. Inter-Component Messages

| From | To | Message | Triggers |
|------|----|---------|----------|
| storefront | order-service | `POST /orders` (cart, customer id) | new `PENDING` order |
| order-service | inventory-worker | `OrderCreated` (order id, line items) | stock reservation |
| inventory-worker | order-service | `InventoryReserved` (order id) | payment capture |
| inventory-worker | order-service | `InventoryRejected` (order id, sku) | order cancellation |
| order-service | storefront | `GET /orders/:id` response | status display |
"""
