# vim: tabstop=4 shiftwidth=4 softtabstop=4

# Copyright (c) 2012 VMware, Inc.
# Copyright (c) 2011 Citrix Systems, Inc.
# Copyright 2011 OpenStack Foundation
#
#    Licensed under the Apache License, Version 2.0 (the "License"); you may
#    not use this file except in compliance with the License. You may obtain
#    a copy of the License at
#
#         http://www.apache.org/licenses/LICENSE-2.0
#
#    Unless required by applicable law or agreed to in writing, software
#    distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
#    WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
#    License for the specific language governing permissions and limitations
#    under the License.

"""
The VMware API utility module: managed object references, traversal
specifications, property collector specs and flattening of the XML the
property collector returns.
"""

import collections
import logging
import pprint
import types

from suds.sax.attribute import Attribute
from suds.sax.element import Element

from pyvsphere import error_util

LOG = logging.getLogger(__name__)

API_VERSION = '5.0'


class ManagedObjectReference(collections.namedtuple(
        'ManagedObjectReference', ['type', 'value'])):
    """Opaque (type, id) pair naming a server-side entity."""
    __slots__ = ()

    def __str__(self):
        return self.value


_SelectSet = collections.namedtuple(
    'SelectSet', ['name', 'path', 'type', 'skip', 'select_sets'])


class SelectSet(_SelectSet):
    """Named traversal rule: from objects of `type` follow `path`."""
    __slots__ = ()

    def __new__(cls, name, path, type='Folder', skip=False, select_sets=()):
        return super(SelectSet, cls).__new__(cls, name, path, type, skip,
                                              tuple(select_sets))


def _vm_graph():
    return (
        SelectSet('folders', 'childEntity',
                  select_sets=['folders', 'datacenter', 'vapp']),
        SelectSet('datacenter', 'vmFolder', type='Datacenter',
                  select_sets=['folders', 'vapp']),
        SelectSet('vapp', 'vm', type='VirtualApp'),
    )


def _host_graph():
    return (
        SelectSet('folders', 'childEntity',
                  select_sets=['folders', 'datacenter', 'clusters',
                               'compres']),
        SelectSet('datacenter', 'hostFolder', type='Datacenter',
                  select_sets=['folders']),
        SelectSet('clusters', 'host', type='ClusterComputeResource'),
        SelectSet('compres', 'host', type='ComputeResource'),
    )


def _datastore_graph():
    return (
        SelectSet('folders', 'childEntity',
                  select_sets=['folders', 'datacenter']),
        SelectSet('datacenter', 'datastore', type='Datacenter'),
    )


def _cluster_graph():
    return (
        SelectSet('folders', 'childEntity',
                  select_sets=['folders', 'datacenter']),
        SelectSet('datacenter', 'hostFolder', type='Datacenter',
                  select_sets=['folders']),
    )


def _datacenter_graph():
    return (
        SelectSet('folders', 'childEntity', select_sets=['folders']),
    )


def _network_graph():
    return (
        SelectSet('folders', 'childEntity',
                  select_sets=['folders', 'datacenter']),
        SelectSet('datacenter', 'networkFolder', type='Datacenter',
                  select_sets=['folders']),
    )


# Default traversal from the root folder, per target type.
TRAVERSAL_GRAPHS = types.MappingProxyType({
    'VirtualMachine': _vm_graph(),
    'VirtualApp': _vm_graph(),
    'HostSystem': _host_graph(),
    'Datastore': _datastore_graph(),
    'ClusterComputeResource': _cluster_graph(),
    'ComputeResource': _cluster_graph(),
    'Datacenter': _datacenter_graph(),
    'Network': _network_graph(),
    'DistributedVirtualPortgroup': _network_graph(),
})


def new_element(name, value=None, type=None, xsi_type=None):
    """Build a request XML element.

    `value` may be a string, number, boolean, ManagedObjectReference,
    an Element or a list of Elements (children). None leaves the element
    empty. Text and attribute values are escaped on serialization.
    """
    element = Element(name)
    if xsi_type is not None:
        element.append(Attribute('xsi:type', xsi_type))
    if isinstance(value, ManagedObjectReference):
        element.append(Attribute('type', value.type))
        element.setText(value.value)
        return element
    if type is not None:
        element.append(Attribute('type', type))
    if isinstance(value, Element):
        element.append(value)
    elif isinstance(value, (list, tuple)):
        element.append(list(value))
    elif isinstance(value, bool):
        element.setText('true' if value else 'false')
    elif value is not None:
        element.setText(str(value))
    return element


def build_object_set(select_sets, root, root_type='Folder'):
    """Builds the objectSet content walking from root through select_sets.

    Select sets refer to each other by name; forward references and
    cycles are allowed since the server resolves the graph.
    """
    if select_sets is None:
        raise error_util.InvalidSpec(
            "Required parameter 'select_sets' isn't defined")
    if root is None:
        raise error_util.InvalidSpec("Root of the object set isn't defined")
    object_set = [new_element('obj', str(root), type=root_type)]
    for select_set in select_sets:
        if not isinstance(select_set, SelectSet):
            select_set = SelectSet(**select_set)
        for field in ('name', 'path'):
            if not getattr(select_set, field):
                raise error_util.InvalidSpec(
                    "Missed required element %s in select set" % field)
        children = [
            new_element('name', select_set.name),
            new_element('type', select_set.type),
            new_element('path', select_set.path),
            new_element('skip', bool(select_set.skip)),
        ]
        for name in select_set.select_sets:
            children.append(new_element('selectSet',
                                        [new_element('name', name)]))
        object_set.append(new_element('selectSet', children,
                                      xsi_type='TraversalSpec'))
    return object_set


def build_single_object_set(mo_type, moid):
    """The trivial object set consisting of one managed object."""
    return [new_element('obj', str(moid), type=mo_type)]


def build_retrieve_spec(of, object_set, properties=None, max_objects=None):
    """Builds the RetrievePropertiesEx arguments: specSet and options."""
    if isinstance(properties, str):
        properties = [properties]
    prop_set = [new_element('type', of)]
    if properties:
        prop_set.append(new_element('all', False))
        for path in sorted(set(properties)):
            prop_set.append(new_element('pathSet', path))
    else:
        prop_set.append(new_element('all', True))
    spec_set = new_element('specSet', [
        new_element('propSet', prop_set),
        new_element('objectSet', list(object_set)),
    ])
    options = new_element('options', [])
    if max_objects is not None:
        if int(max_objects) <= 0:
            raise error_util.ValidationError(
                "max_objects should be a positive number")
        options.append(new_element('maxObjects', int(max_objects)))
    return [spec_set, options]


def _attribute(node, name, prefixed):
    for attr in node.attributes:
        if attr.name == name and (attr.prefix is not None) == prefixed:
            return attr.getValue()
    return None


def ref_type(node):
    """The `type` attribute of a managed object reference element."""
    return _attribute(node, 'type', False)


def xsi_type(node):
    return _attribute(node, 'type', True)


def to_value(node, keep_types=False):
    """Flattens a response element into plain Python data.

    Managed object references become ManagedObjectReference, ArrayOf*
    values become lists, leaves become strings and everything else a dict
    where repeated child names collect into lists. Type discriminators are
    dropped unless keep_types is set, in which case records carry them
    under '_type'.
    """
    mo_type = ref_type(node)
    if mo_type is not None:
        return ManagedObjectReference(str(mo_type), str(node.getText('')))
    node_type = xsi_type(node)
    children = node.getChildren()
    if node_type is not None and node_type.startswith('ArrayOf'):
        return [to_value(child, keep_types) for child in children]
    if not children:
        return str(node.getText(''))
    counts = collections.Counter(child.name for child in children)
    record = {}
    if keep_types and node_type is not None:
        record['_type'] = str(node_type)
    for child in children:
        value = to_value(child, keep_types)
        if counts[child.name] > 1:
            record.setdefault(child.name, []).append(value)
        else:
            record[child.name] = value
    return record


def as_list(value):
    """A repeated element that occurred once is not a list; make it one."""
    if value is None or value == '':
        return []
    if isinstance(value, list):
        return value
    return [value]


ObjectContent = collections.namedtuple('ObjectContent', ['obj', 'props'])
RetrieveResult = collections.namedtuple('RetrieveResult',
                                        ['objects', 'token'])


def parse_retrieve_result(response, keep_types=False):
    """Parses a (Continue)RetrievePropertiesEx response element."""
    returnval = response.getChild('returnval')
    if returnval is None:
        # nothing matched
        return RetrieveResult([], None)
    objects = []
    object_nodes = returnval.getChildren('objects')
    if not object_nodes:
        raise error_util.ProtocolError("Invalid response: no objects in %s"
                                       % returnval.plain())
    for node in object_nodes:
        obj = node.getChild('obj')
        if obj is None or ref_type(obj) is None:
            raise error_util.ProtocolError(
                "Invalid response: object without reference in %s"
                % node.plain())
        props = {}
        for prop in node.getChildren('propSet'):
            name = prop.getChild('name')
            if name is None:
                raise error_util.ProtocolError(
                    "Invalid response: property without name in %s"
                    % prop.plain())
            path = str(name.getText(''))
            val = prop.getChild('val')
            value = to_value(val, keep_types) if val is not None else None
            props[path] = convert_property(path, value)
        for missing in node.getChildren('missingSet'):
            LOG.debug("Property %s is missing for %s",
                      missing.getChild('path').getText(''), obj.getText(''))
        objects.append(ObjectContent(to_value(obj), props))
    token = returnval.getChild('token')
    if token is not None:
        token = str(token.getText(''))
    return RetrieveResult(objects, token or None)


STRING = 'string'
INT = 'int'
BOOL = 'bool'
REF = 'ref'
REF_LIST = 'ref_list'
LIST = 'list'
RECORD = 'record'

# Shapes of the properties this library relies on; anything else passes
# through untyped.
PROPERTY_TYPES = types.MappingProxyType({
    'name': STRING,
    'info.name': STRING,
    'info.url': STRING,
    'config.files.vmPathName': STRING,
    'runtime.powerState': STRING,
    'guest.toolsRunningStatus': STRING,
    'summary.config.numCpu': INT,
    'summary.config.memorySizeMB': INT,
    'config.template': BOOL,
    'parent': REF,
    'parentVApp': REF,
    'parentFolder': REF,
    'resourcePool': REF,
    'vmFolder': REF,
    'browser': REF,
    'processManager': REF,
    'snapshot.currentSnapshot': REF,
    'configManager.datastoreSystem': REF,
    'configManager.networkSystem': REF,
    'datastore': REF_LIST,
    'host': REF_LIST,
    'vm': REF_LIST,
    'config.hardware.device': LIST,
    'snapshot.rootSnapshotList': LIST,
    'info': RECORD,
    'currentSession': RECORD,
})


def convert_property(path, value, property_types=PROPERTY_TYPES):
    """Applies the typed accessor for path, if any.

    A value of the wrong shape is a ProtocolError, never coerced.
    """
    kind = property_types.get(path)
    if kind is None or value is None:
        return value

    def _bad_shape():
        return error_util.ProtocolError(
            "Unexpected value for property '%s' (expected %s): %r"
            % (path, kind, value))

    if kind in (STRING, INT, BOOL):
        if not isinstance(value, str):
            raise _bad_shape()
        if kind == INT:
            try:
                return int(value)
            except ValueError:
                raise _bad_shape()
        if kind == BOOL:
            if value not in ('true', 'false', '1', '0'):
                raise _bad_shape()
            return value in ('true', '1')
        return value
    if kind == REF:
        if not isinstance(value, ManagedObjectReference):
            raise _bad_shape()
        return value
    if kind == REF_LIST:
        value = as_list(value)
        if not all(isinstance(v, ManagedObjectReference) for v in value):
            raise _bad_shape()
        return value
    if kind == LIST:
        return as_list(value)
    if not isinstance(value, dict):
        raise _bad_shape()
    return value


def filter_value(value):
    """Value used for `where` equality: scalars compare as strings."""
    if isinstance(value, ManagedObjectReference):
        return value.value
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (dict, list, tuple, set)):
        raise error_util.ValidationError(
            "Can't filter by a non-scalar value: %r" % (value,))
    if value is None:
        return None
    return str(value)


def matches(props, where):
    for path, expected in where.items():
        if filter_value(props.get(path)) != filter_value(expected):
            return False
    return True


TASK_STATES = ('queued', 'running', 'success', 'error')

TaskInfo = collections.namedtuple('TaskInfo',
                                  ['key', 'state', 'result', 'error', 'raw'])


def task_info(value):
    """Typed view of a Task's `info` record."""
    if not isinstance(value, dict) or 'state' not in value:
        raise error_util.ProtocolError("Invalid task info: %r" % (value,))
    state = value['state']
    if not isinstance(state, str):
        raise error_util.ProtocolError("Invalid task state: %r" % (state,))
    return TaskInfo(value.get('key'), state.lower(), value.get('result'),
                    value.get('error'), value)


def task_error_message(info):
    """Localized fault text of a failed task, or a dump of its info."""
    error = info.error
    if isinstance(error, dict) and error.get('localizedMessage'):
        return error['localizedMessage']
    return pprint.pformat(info.raw)


class ServiceContent(object):
    """Attribute access to the RetrieveServiceContent result."""

    def __init__(self, values):
        self._values = dict(values)

    def __getattr__(self, name):
        try:
            return self.__dict__['_values'][name]
        except KeyError:
            raise AttributeError(name)

    def get(self, name, default=None):
        return self._values.get(name, default)

    def __repr__(self):
        return "ServiceContent(%r)" % self._values
