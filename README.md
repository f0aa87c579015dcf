# pgwirekit

Building blocks for talking to PostgreSQL at the wire level. pgwirekit
produces the bytes a client sends and decodes binary values it receives.
It has no runtime dependencies.

## Modules

- `pgwirekit.frontend` builds client-to-server messages. The functions are
  `startup_message`, `ssl_request`, `cancel_request`, `query`, `parse`,
  `bind`, `describe`, `execute`, `close`, `flush`, `sync`, `terminate`,
  `copy_data`, `copy_done`, `copy_fail`, `password_message`,
  `sasl_initial_response` and `sasl_response`. Each one returns the complete
  message as `bytes`.
- `pgwirekit.scalar` holds binary codecs for scalar types: `bool`, `bytea`,
  `text`, `"char"`, `int2`, `int4`, `int8`, `oid`, `pg_lsn`, `float4`,
  `float8`, `hstore`, `varbit` (decoded to `Varbit`), `timestamp`, `date`,
  `time`, `macaddr` and `uuid` (decoded to `uuid.UUID`).
- `pgwirekit.structured` holds binary codecs for arrays (`Array`,
  `ArrayDimension`), ranges (`Range`, `RangeBound`, `BoundKind`), geometric
  types (`Point`, `Box`, `Path`), `inet` (`Inet`), and `ltree`, `lquery` and
  `ltxtquery`.
- `pgwirekit.sasl` implements the client side of SCRAM-SHA-256 and
  SCRAM-SHA-256-PLUS through `ScramSha256` and `ChannelBinding`. It also
  provides `md5_hash` for answering MD5 password challenges, `saslprep`, and
  parsers for the server's SCRAM messages.
- `pgwirekit.password` provides `scram_sha_256` and `md5`. Both produce
  pre-hashed passwords for statements such as `ALTER USER ... PASSWORD`.
- `pgwirekit.escape` provides `escape_literal` and `escape_identifier`.
- `pgwirekit.catalog` parses the server's catalog sources. `parse_errcodes`
  reads `errcodes.txt` into a map from SQLSTATE code to condition names.
  `parse_dat` reads the `.dat` record format. `parse_types` combines
  `pg_type.dat` and `pg_range.dat` into `CatalogType` entries keyed by OID.
- `pgwirekit.core` holds the shared pieces: `ProtocolError`, `IsNull`,
  `nullable`, `to_i16` and `to_i32`.

## Examples

Build a simple query message:

```python
from pgwirekit.frontend import query

payload = query("SELECT 1")
# b'Q\x00\x00\x00\rSELECT 1\x00'
```

Build a `Bind` message. The serializer returns `bytes`, or `None` for SQL
`NULL`:

```python
from pgwirekit.frontend import bind
from pgwirekit.scalar import int4_to_sql

message = bind("", "stmt", [1], [42, None],
               lambda v: None if v is None else int4_to_sql(v), [1])
```

Encode and decode binary values:

```python
from pgwirekit.scalar import int4_from_sql, int4_to_sql
from pgwirekit.structured import ArrayDimension, array_from_sql, array_to_sql

assert int4_from_sql(int4_to_sql(42)) == 42

raw = array_to_sql([ArrayDimension(2, 1)], 23, [1, 2], int4_to_sql)
array = array_from_sql(raw)
# array.values == (b'\x00\x00\x00\x01', b'\x00\x00\x00\x02')
```

Run a SCRAM-SHA-256 exchange. `server_first` and `server_final` stand for
the bytes received from the server:

```python
from pgwirekit.sasl import ChannelBinding, ScramSha256

password = "password"
scram = ScramSha256(password.encode(), ChannelBinding.unsupported())
first = scram.message()     # send in SASLInitialResponse
scram.update(server_first)  # from AuthenticationSASLContinue
second = scram.message()    # send in SASLResponse
scram.finish(server_final)  # from AuthenticationSASLFinal; raises on failure
```

Hash a password on the client:

```python
from pgwirekit.password import scram_sha_256

password = "password"
stored = scram_sha_256(password)  # 'SCRAM-SHA-256$4096:...'
```

Escape values for hand-built SQL. Use parameterized queries where you can:

```python
from pgwirekit.escape import escape_identifier, escape_literal

escape_identifier('my"table')  # '"my""table"'
escape_literal("it's")         # "'it''s'"
escape_literal("a\\b")         # " E'a\\\\b'"
```

## Errors

- Codecs and message builders raise `pgwirekit.core.ProtocolError` (a
  `ValueError`) on malformed input or values too large to send.
- `bind` wraps its failures in `pgwirekit.frontend.BindError`. The error's
  `conversion` flag tells a failing serializer apart from an encoding
  problem, and `cause` holds the original error.
- Authentication failures and out-of-order calls raise
  `pgwirekit.sasl.ScramError`.
- Malformed catalog data raises `pgwirekit.catalog.DatParseError`.

## What it does not do

pgwirekit does not open connections, negotiate TLS or run a query loop. It
has no parser for messages sent by the server. Apart from the SCRAM exchange
messages, it only decodes the binary values listed above. It assumes the
server's `client_encoding` is `UTF8`.

## Running the tests

```
pip install -e ".[test]"
pytest
```