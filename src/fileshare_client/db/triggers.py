# File: fileshare_client/db/triggers.py
from sqlalchemy import DDL, event
from .file_orm import FileORM

# --- Trigger keeping 'updated_at' current on raw UPDATEs too ---
# Each statement is its own DDL object: asyncpg refuses multi-statement strings.

create_update_function_ddl = DDL("""
    CREATE OR REPLACE FUNCTION update_updated_at_column()
    RETURNS TRIGGER AS $$
    BEGIN
        NEW.updated_at = now();
        RETURN NEW;
    END;
    $$ language 'plpgsql';
""")

drop_update_trigger_ddl = DDL("""
    DROP TRIGGER IF EXISTS update_files_updated_at ON files;
""")

create_update_trigger_ddl = DDL("""
    CREATE TRIGGER update_files_updated_at
    BEFORE UPDATE ON files
    FOR EACH ROW
    EXECUTE FUNCTION update_updated_at_column();
""")

# Bound to "after_create" of the files table; PostgreSQL only, other
# dialects rely on the ORM onupdate.
event.listen(FileORM.__table__, "after_create", create_update_function_ddl.execute_if(dialect="postgresql"))
event.listen(FileORM.__table__, "after_create", drop_update_trigger_ddl.execute_if(dialect="postgresql"))
event.listen(FileORM.__table__, "after_create", create_update_trigger_ddl.execute_if(dialect="postgresql"))
