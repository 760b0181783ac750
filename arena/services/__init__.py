"""
Service layer: plain async functions over an AsyncSession, plus the
registration session driver and the blob store.

Import from the concrete modules (arena.services.wallet_service, ...). The
package itself re-exports nothing so that arena.states and arena.validators
can depend on its leaf modules without import cycles.
"""
