from __future__ import annotations

import hashlib
from typing import Callable

import pytest

from vulnmine.data.dedup import content_hash
from vulnmine.data.schema import CandidateSample, Category, CommitRecord, DatasetRecord, FileDiff, ScoreSignals

SQL_BEFORE = """\
package org.example.store;

import java.sql.Connection;
import java.sql.SQLException;
import java.sql.Statement;

public class ItemDao {
    private final Connection conn;

    public ItemDao(Connection conn) {
        this.conn = conn;
    }

    public void deleteItems(String ids) throws SQLException {
        Statement stmt = conn.createStatement();
        stmt.execute("DELETE FROM items WHERE id IN (" + ids + ")");
        stmt.close();
    }
}
"""

SQL_AFTER = """\
package org.example.store;

import java.sql.Connection;
import java.sql.SQLException;
import java.sql.Statement;
import java.util.List;

public class ItemDao {
    private final Connection conn;

    public ItemDao(Connection conn) {
        this.conn = conn;
    }

    public void deleteItems(List<Long> ids) throws SQLException {
        if (ids.isEmpty()) {
            return;
        }
        Statement stmt = conn.createStatement();
        for (Long id : ids) {
            stmt.addBatch("DELETE FROM items WHERE id = " + id.longValue());
        }
        stmt.executeBatch();
        conn.commit();
        stmt.close();
    }
}
"""

XSS_BEFORE = """\
package org.example.web;

import java.io.IOException;
import javax.servlet.http.HttpServlet;
import javax.servlet.http.HttpServletRequest;
import javax.servlet.http.HttpServletResponse;

public class GreetingServlet extends HttpServlet {
    @Override
    protected void doGet(HttpServletRequest request, HttpServletResponse response) throws IOException {
        String name = request.getParameter("name");
        response.getWriter().println("<p>Hello " + name + "</p>");
    }
}
"""

XSS_AFTER = """\
package org.example.web;

import java.io.IOException;
import javax.servlet.http.HttpServlet;
import javax.servlet.http.HttpServletRequest;
import javax.servlet.http.HttpServletResponse;
import org.apache.commons.text.StringEscapeUtils;

public class GreetingServlet extends HttpServlet {
    @Override
    protected void doGet(HttpServletRequest request, HttpServletResponse response) throws IOException {
        String name = request.getParameter("name");
        response.setContentType("text/html; charset=UTF-8");
        String safeName = StringEscapeUtils.escapeHtml4(name == null ? "" : name);
        response.getWriter().println("<p>Hello " + safeName + "</p>");
    }
}
"""

CMDI_BEFORE = """\
package org.example.net;

import java.io.IOException;

public class PingService {
    public String ping(String host) throws IOException {
        Process process = Runtime.getRuntime().exec("ping -c 1 " + host);
        return ProcessOutput.read(process);
    }
}
"""

CMDI_AFTER = """\
package org.example.net;

import java.io.IOException;
import java.util.Arrays;
import java.util.regex.Pattern;

public class PingService {
    private static final Pattern HOST_PATTERN = Pattern.compile("^[A-Za-z0-9.-]+$");

    public String ping(String host) throws IOException {
        if (!HOST_PATTERN.matcher(host).matches()) {
            throw new IllegalArgumentException("Invalid host: " + host);
        }
        Process process = new ProcessBuilder(Arrays.asList("ping", "-c", "1", host)).start();
        return ProcessOutput.read(process);
    }
}
"""

PATH_BEFORE = """\
package org.example.files;

import java.io.File;
import java.io.IOException;
import java.nio.file.Files;

public class DownloadController {
    private static final String BASE_DIR = "/var/app/files";

    public byte[] download(String fileName) throws IOException {
        File file = new File(BASE_DIR + "/" + fileName);
        return Files.readAllBytes(file.toPath());
    }
}
"""

PATH_AFTER = """\
package org.example.files;

import java.io.File;
import java.io.IOException;
import java.nio.file.Files;

public class DownloadController {
    private static final String BASE_DIR = "/var/app/files";

    public byte[] download(String fileName) throws IOException {
        File base = new File(BASE_DIR).getCanonicalFile();
        File file = new File(base, fileName).getCanonicalFile();
        if (!file.getPath().startsWith(base.getPath() + File.separator)) {
            throw new SecurityException("Access outside base directory: " + fileName);
        }
        return Files.readAllBytes(file.toPath());
    }
}
"""

DESER_BEFORE = """\
package org.example.config;

import java.io.IOException;
import java.io.InputStream;
import java.io.ObjectInputStream;

public class SettingsLoader {
    public Settings load(InputStream input) throws IOException, ClassNotFoundException {
        ObjectInputStream in = new ObjectInputStream(input);
        return (Settings) in.readObject();
    }
}
"""

DESER_AFTER = """\
package org.example.config;

import java.io.IOException;
import java.io.InputStream;
import org.apache.commons.io.serialization.ValidatingObjectInputStream;

public class SettingsLoader {
    public Settings load(InputStream input) throws IOException, ClassNotFoundException {
        ValidatingObjectInputStream in = new ValidatingObjectInputStream(input);
        in.accept(Settings.class, String.class, Integer.class);
        in.reject("*");
        return (Settings) in.readObject();
    }
}
"""

# message, before, after, expected score
JAVA_FIXES: dict[Category, tuple[str, str, str, float]] = {
    Category.SQL_INJECTION: (
        "bug: 41970 convert all x IN (y) clauses to x = y for sqlite perf",
        SQL_BEFORE,
        SQL_AFTER,
        0.8,
    ),
    Category.XSS: ("Fix XSS in greeting servlet", XSS_BEFORE, XSS_AFTER, 1.0),
    Category.COMMAND_INJECTION: ("Prevent command injection in ping endpoint", CMDI_BEFORE, CMDI_AFTER, 1.0),
    Category.PATH_TRAVERSAL: ("Fix path traversal in download endpoint", PATH_BEFORE, PATH_AFTER, 0.8),
    Category.INSECURE_DESERIALIZATION: (
        "Restrict classes accepted during deserialization (CVE-2015-7501)",
        DESER_BEFORE,
        DESER_AFTER,
        1.0,
    ),
}

FILE_NAMES = {
    Category.SQL_INJECTION: "src/main/java/org/example/store/ItemDao.java",
    Category.XSS: "src/main/java/org/example/web/GreetingServlet.java",
    Category.COMMAND_INJECTION: "src/main/java/org/example/net/PingService.java",
    Category.PATH_TRAVERSAL: "src/main/java/org/example/files/DownloadController.java",
    Category.INSECURE_DESERIALIZATION: "src/main/java/org/example/config/SettingsLoader.java",
}


def commit_hash(*parts: object) -> str:
    return hashlib.sha1(":".join(str(part) for part in parts).encode("utf-8")).hexdigest()


def build_commit(
    message: str,
    files: list[tuple[str, str, str]],
    repo: str = "example/store",
    salt: str = "",
) -> CommitRecord:
    return CommitRecord(
        repo=repo,
        hash=commit_hash(repo, message, salt, *(path for path, _, _ in files)),
        message=message,
        files=tuple(FileDiff(path=path, before=before, after=after) for path, before, after in files),
    )


def fix_commit(category: Category, repo: str = "example/store", salt: str = "") -> CommitRecord:
    message, before, after, _ = JAVA_FIXES[category]
    return build_commit(message, [(FILE_NAMES[category], before, after)], repo=repo, salt=salt)


@pytest.fixture
def java_fixes() -> dict[Category, tuple[str, str, str, float]]:
    return JAVA_FIXES


@pytest.fixture
def make_commit() -> Callable[..., CommitRecord]:
    return build_commit


@pytest.fixture
def make_fix_commit() -> Callable[..., CommitRecord]:
    return fix_commit


@pytest.fixture
def five_fix_commits() -> list[CommitRecord]:
    """One accepted fix per category, in category order."""
    return [fix_commit(category) for category in Category]


def build_sample(
    serial_no: int,
    category: Category,
    code: str | None = None,
    commit: str | None = None,
    repo: str = "example/store",
    score: float = 0.8,
    augmented_from: int | None = None,
) -> CandidateSample:
    code = code if code is not None else f"int v{serial_no} = {serial_no};"
    record = DatasetRecord(
        serial_no=serial_no,
        vulnerable_code=code,
        vulnerability_type=category,
        repo=repo,
        commit=commit or commit_hash("sample", serial_no),
        commit_msg=f"fix {category.value} #{serial_no}",
        original_file=f"Sample{serial_no}.java",
        confidence_score=score,
    )
    return CandidateSample(
        record=record,
        # 0.6 = change + indicator, 0.8 adds the fix indicator, 1.0 the strong message
        signals=ScoreSignals(
            real_change=True,
            vulnerability_pattern=True,
            fix_pattern=score >= 0.8,
            strong_message=score >= 1.0,
        ),
        content_hash=content_hash(code),
        source_path=f"src/Sample{serial_no}.java",
        augmented_from=augmented_from,
    )


@pytest.fixture
def make_sample() -> Callable[..., CandidateSample]:
    return build_sample
