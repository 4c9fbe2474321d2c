"""Pytest configuration and fixtures for scope-resolver tests."""
from __future__ import annotations

from pathlib import Path

import pytest


TREE_GROUP = "org.example.tree"

_POM_HEADER = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0" xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" xsi:schemaLocation="http://maven.apache.org/POM/4.0.0 http://maven.apache.org/xsd/maven-4.0.0.xsd">
  <modelVersion>4.0.0</modelVersion>
"""

_TREE_PARENT = """
  <parent>
    <groupId>org.example.tree</groupId>
    <artifactId>tree-parent</artifactId>
    <version>0.0.1</version>
  </parent>
"""


def _pom(artifact_id: str, body: str = "", parent: str = _TREE_PARENT) -> str:
    return f"""{_POM_HEADER}{parent}
  <artifactId>{artifact_id}</artifactId>
{body}</project>
"""


def _dependencies(*gas: str) -> str:
    deps = "".join(
        f"""    <dependency>
      <groupId>{ga.split(":")[0]}</groupId>
      <artifactId>{ga.split(":")[1]}</artifactId>
      <version>0.0.1</version>
    </dependency>
"""
        for ga in gas
    )
    return f"""
  <dependencies>
{deps}  </dependencies>
"""


# One root parent, one structural-only parent (proper-parent, which lists
# module-5) and nine children. module-5 declares declared-parent as its
# Maven parent although proper-parent is the module that aggregates it.
TREE_POMS: dict[str, str] = {
    "pom.xml": f"""{_POM_HEADER}
  <parent>
    <groupId>org.example.external</groupId>
    <artifactId>external-parent</artifactId>
    <version>1.2.3</version>
  </parent>

  <groupId>org.example.tree</groupId>
  <artifactId>tree-parent</artifactId>
  <version>0.0.1</version>
  <packaging>pom</packaging>

  <properties>
    <prop1>val-parent</prop1>
  </properties>

  <modules>
    <module>module-1</module>
    <module>module-2</module>
    <module>module-3</module>
    <module>module-4</module>
    <module>module-6</module>
    <module>module-7</module>
    <module>plugin</module>
    <module>proper-parent</module>
    <module>declared-parent</module>
  </modules>
</project>
""",
    "module-1/pom.xml": _pom("tree-module-1", _dependencies("org.example.external:artifact-3")),
    "module-2/pom.xml": _pom(
        "tree-module-2",
        """
  <dependencyManagement>
    <dependencies>
      <dependency>
        <groupId>org.example.tree</groupId>
        <artifactId>tree-module-3</artifactId>
        <version>0.0.1</version>
      </dependency>
    </dependencies>
  </dependencyManagement>

  <dependencies>
    <dependency>
      <groupId>${project.groupId}</groupId>
      <artifactId>tree-module-4</artifactId>
      <version>${project.version}</version>
    </dependency>
    <dependency>
      <groupId>org.example.tree</groupId>
      <artifactId>tree-module-7</artifactId>
      <version>0.0.1</version>
      <exclusions>
        <exclusion>
          <groupId>org.example.tree</groupId>
          <artifactId>tree-module-6</artifactId>
        </exclusion>
      </exclusions>
    </dependency>
    <dependency>
      <groupId>org.example.external</groupId>
      <artifactId>artifact-4</artifactId>
      <version>1.2.3</version>
    </dependency>
  </dependencies>
""",
    ),
    "module-3/pom.xml": _pom("tree-module-3", _dependencies("org.example.external:artifact-1")),
    "module-4/pom.xml": _pom(
        "tree-module-4",
        _dependencies("org.example.tree:tree-module-1", "org.example.tree:tree-module-5"),
    ),
    "module-6/pom.xml": _pom("tree-module-6"),
    "module-7/pom.xml": _pom(
        "tree-module-7",
        """
  <build>
    <pluginManagement>
      <plugins>
        <plugin>
          <artifactId>maven-compiler-plugin</artifactId>
          <version>3.11.0</version>
        </plugin>
      </plugins>
    </pluginManagement>
    <plugins>
      <plugin>
        <groupId>org.example.tree</groupId>
        <artifactId>tree-plugin</artifactId>
        <version>0.0.1</version>
      </plugin>
    </plugins>
  </build>
""",
    ),
    "plugin/pom.xml": _pom("tree-plugin", "  <packaging>maven-plugin</packaging>\n"),
    "proper-parent/pom.xml": _pom(
        "proper-parent",
        """  <packaging>pom</packaging>

  <modules>
    <module>module-5</module>
  </modules>
""",
    ),
    "proper-parent/module-5/pom.xml": _pom(
        "tree-module-5",
        parent="""
  <parent>
    <groupId>org.example.tree</groupId>
    <artifactId>declared-parent</artifactId>
    <version>0.0.1</version>
    <relativePath>../../declared-parent</relativePath>
  </parent>
""",
    ),
    "declared-parent/pom.xml": _pom("declared-parent", "  <packaging>pom</packaging>\n"),
}

# A reactor whose modules and dependencies partly live in profiles.
PROFILE_POMS: dict[str, str] = {
    "pom.xml": """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <modelVersion>4.0.0</modelVersion>
  <groupId>com.acme</groupId>
  <artifactId>root</artifactId>
  <version>1.0</version>
  <packaging>pom</packaging>
  <modules>
    <module>app</module>
    <module>lib</module>
  </modules>
  <profiles>
    <profile>
      <id>tools</id>
      <activation>
        <property>
          <name>withTools</name>
        </property>
      </activation>
      <modules>
        <module>tools</module>
      </modules>
    </profile>
    <profile>
      <modules>
        <module>extra</module>
      </modules>
    </profile>
  </profiles>
</project>
""",
    "app/pom.xml": """<project>
  <parent>
    <groupId>com.acme</groupId>
    <artifactId>root</artifactId>
    <version>1.0</version>
  </parent>
  <artifactId>app</artifactId>
  <profiles>
    <profile>
      <id>release</id>
      <dependencies>
        <dependency>
          <groupId>com.acme</groupId>
          <artifactId>lib</artifactId>
        </dependency>
        <dependency>
          <groupId>org.thirdparty</groupId>
          <artifactId>signer</artifactId>
        </dependency>
      </dependencies>
      <build>
        <plugins>
          <plugin>
            <groupId>com.acme</groupId>
            <artifactId>tools</artifactId>
          </plugin>
        </plugins>
      </build>
    </profile>
  </profiles>
</project>
""",
}
for _name in ("lib", "tools", "extra"):
    PROFILE_POMS[f"{_name}/pom.xml"] = f"""<project>
  <parent>
    <groupId>com.acme</groupId>
    <artifactId>root</artifactId>
    <version>1.0</version>
  </parent>
  <artifactId>{_name}</artifactId>
</project>
"""


# Relative to the local repository root. Only the first seven are artifacts of
# org.group1.compon1 at version 2.3.4.
REPO_FILES: tuple[str, ...] = (
    "org/group1/compon1/compon-artifact1/2.3.4/compon-artifact1-2.3.4.jar",
    "org/group1/compon1/compon-artifact1/2.3.4/compon-artifact1-2.3.4.pom",
    "org/group1/compon1/compon-artifact1/2.3.4/compon-artifact1-2.3.4-javadoc.jar",
    "org/group1/compon1/compon-artifact1/2.3.4/compon-artifact1-2.3.4-sources.jar",
    "org/group1/compon1/compon-artifact1/2.3.4/compon-artifact1-2.3.4-sources.tar.gz",
    "org/group1/compon1/compon-artifact1/2.3.4/compon-artifact1-2.3.4.tar.gz",
    "org/group1/compon1/compon-artifact1/2.3.4/compon-artifact1-2.3.4-.jar",
    "org/group1/compon1/compon-artifact1/2.3.4/compon-artifact1-2.3.4.jar.sha1",
    "org/group1/compon1/compon-artifact1/2.3.4/compon-artifact1-2.3.4.pom.md5",
    "org/group1/compon1/compon-artifact1/2.3.4/compon-artifact1-2.3.4.jar.asc",
    "org/group1/compon1/compon-artifact1/2.3.4/compon-artifact1-2.3.4",
    "org/group1/compon1/compon-artifact1/2.3.4/compon-artifact1-2.3.4-sources",
    "org/group1/compon1/compon-artifact1/2.3.4/compon-artifact1-2.3.4_x.jar",
    "org/group1/compon1/compon-artifact1/2.3.4/_remote.repositories",
    "org/group1/compon1/compon-artifact1/maven-metadata-local.xml",
    "org/group1/compon1/compon-artifact1/1.2.3/compon-artifact1-1.2.3.jar",
    "org/group1/artifact1/1.2.3/artifact1-1.2.3.jar",
    "org/group1/artifact1/1.2.3/artifact1-1.2.3.pom",
    "org/group1/artifact1/1.2.3/artifact1-1.2.3.pom.sha1",
    "org/group2/compon1/artifact2/2.3.4/artifact2-2.3.4.jar",
    "org/group2/compon1/artifact2/2.3.4-SNAPSHOT/artifact2-2.3.4-SNAPSHOT.jar",
)


def write_files(root: Path, files: dict[str, str]) -> Path:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture(autouse=True)
def clean_scope_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep SCOPE_* variables of the calling shell out of the tests."""
    for name in (
        "SCOPE_INCLUDES",
        "SCOPE_EXCLUDES",
        "SCOPE_EXCLUDE_SNAPSHOTS",
        "SCOPE_LOCAL_REPOSITORY",
        "SCOPE_ENCODING",
        "SCOPE_PROFILES",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def tree_dir(tmp_path: Path) -> Path:
    """A source tree of 11 modules, see TREE_POMS."""
    return write_files(tmp_path / "tree-1", TREE_POMS)


@pytest.fixture
def local_repo(tmp_path: Path) -> Path:
    """A small local Maven repository, see REPO_FILES."""
    root = tmp_path / "local-maven-repo"
    return write_files(root, {rel: "" for rel in REPO_FILES})


@pytest.fixture
def profile_dir(tmp_path: Path) -> Path:
    """A source tree using profiles, see PROFILE_POMS."""
    return write_files(tmp_path / "profiles", PROFILE_POMS)
