"""
Report header and footer.

The header saves and overrides session variables (character set, time zone,
key checks, SQL mode) for the replaying client; the footer restores them and
stamps the completion time.
"""

from __future__ import annotations

from datetime import datetime

from .base import ReportMetadata

HEADER_TEMPLATE = """-- snapdump SQL Dump {dump_version}
--
-- ------------------------------------------------------
-- Server version\t{server_version}

/*!40101 SET @OLD_CHARACTER_SET_CLIENT=@@CHARACTER_SET_CLIENT */;
/*!40101 SET @OLD_CHARACTER_SET_RESULTS=@@CHARACTER_SET_RESULTS */;
/*!40101 SET @OLD_COLLATION_CONNECTION=@@COLLATION_CONNECTION */;
 SET NAMES utf8mb4 ;
/*!40103 SET @OLD_TIME_ZONE=@@TIME_ZONE */;
/*!40103 SET TIME_ZONE='+00:00' */;
/*!40014 SET @OLD_UNIQUE_CHECKS=@@UNIQUE_CHECKS, UNIQUE_CHECKS=0 */;
/*!40014 SET @OLD_FOREIGN_KEY_CHECKS=@@FOREIGN_KEY_CHECKS, FOREIGN_KEY_CHECKS=0 */;
/*!40101 SET @OLD_SQL_MODE=@@SQL_MODE, SQL_MODE='NO_AUTO_VALUE_ON_ZERO' */;
/*!40111 SET @OLD_SQL_NOTES=@@SQL_NOTES, SQL_NOTES=0 */;
"""

FOOTER_TEMPLATE = """/*!40103 SET TIME_ZONE=@OLD_TIME_ZONE */;

/*!40101 SET SQL_MODE=@OLD_SQL_MODE */;
/*!40014 SET FOREIGN_KEY_CHECKS=@OLD_FOREIGN_KEY_CHECKS */;
/*!40014 SET UNIQUE_CHECKS=@OLD_UNIQUE_CHECKS */;
/*!40101 SET CHARACTER_SET_CLIENT=@OLD_CHARACTER_SET_CLIENT */;
/*!40101 SET CHARACTER_SET_RESULTS=@OLD_CHARACTER_SET_RESULTS */;
/*!40101 SET COLLATION_CONNECTION=@OLD_COLLATION_CONNECTION */;
/*!40111 SET SQL_NOTES=@OLD_SQL_NOTES */;

-- Dump completed on {complete_time}
"""

COMPLETE_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def render_header(meta: ReportMetadata) -> str:
    return HEADER_TEMPLATE.format(
        dump_version=meta.dump_version,
        server_version=meta.server_version,
    )


def render_footer(meta: ReportMetadata) -> str:
    return FOOTER_TEMPLATE.format(complete_time=meta.complete_time)


def completion_stamp(now: datetime | None = None) -> str:
    """Local wall-clock time in the footer's format."""
    return (now or datetime.now()).strftime(COMPLETE_TIME_FORMAT)
